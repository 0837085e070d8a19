"""CLI entrypoint for the station video story pipeline."""

from __future__ import annotations

import argparse
import asyncio
from datetime import datetime, timezone
import json

from config import get_settings
from core import ObjectArrivalEvent, ProcessingState
from storage import get_story_store
from utils.logger import configure_pipeline_logging


def _parse_time(text: str) -> datetime:
    raw = str(text or "").strip()
    if not raw:
        return datetime.now(timezone.utc)
    value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _print(payload) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def main() -> None:
    parser = argparse.ArgumentParser(description="Station video story pipeline CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)

    arrival = sub.add_parser("arrival")
    arrival.add_argument("--name", required=True)
    arrival.add_argument("--uri", required=True)
    arrival.add_argument("--created-at", default="")

    callback = sub.add_parser("callback")
    callback.add_argument("--id", required=True, dest="video_id")
    callback.add_argument("--state", required=True, choices=[s.value for s in ProcessingState])

    status = sub.add_parser("status")
    status.add_argument("--video-id", default="")
    status.add_argument("--station", default="")
    status.add_argument("--video-name", default="")

    args = parser.parse_args()
    settings = get_settings()
    configure_pipeline_logging(level=settings.pipeline.log_level)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("webapp.app:app", host=args.host, port=int(args.port))
        return

    if args.command == "arrival":
        from webapp.runtime import get_pipeline

        event = ObjectArrivalEvent(name=args.name, uri=args.uri, created_at=_parse_time(args.created_at))
        run = asyncio.run(get_pipeline().handle_object_arrival(event))
        _print(run.model_dump(mode="json"))
        return

    if args.command == "callback":
        from webapp.runtime import get_pipeline

        run = asyncio.run(get_pipeline().handle_analysis_callback(args.video_id, ProcessingState(args.state)))
        _print(run.model_dump(mode="json") if run else {"acknowledged": True, "state": args.state})
        return

    if args.command == "status":
        store = get_story_store(settings.store)
        story = None
        if args.video_id:
            story = store.find_by_video_id(args.video_id)
        elif args.video_name:
            story = store.find_by_video_name(args.video_name, station=args.station or None)
        else:
            parser.error("status needs --video-id or --video-name")
        if story is None:
            _print({"found": False})
            raise SystemExit(1)
        _print({"found": True, "story": story.model_dump(mode="json", by_alias=True)})
        return


if __name__ == "__main__":
    main()
