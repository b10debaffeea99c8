#!/usr/bin/env python3
"""CLI script for detecting rooms in a floor plan image."""

import argparse
import json
import logging
import sys
from pathlib import Path

import cv2

from floor_plan_rooms import DetectionParams, FloorPlanEditor, ImageDecodeError, RasterUnavailable
from floor_plan_rooms.evaluation import TuningLog, evaluate_detection
from floor_plan_rooms.persistence import JsonFloorPlanStore
from floor_plan_rooms.preprocessing import load_image
from floor_plan_rooms.visualization import draw_rooms, generate_room_report


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Detect candidate room rectangles in a floor plan image"
    )
    parser.add_argument(
        "image",
        type=str,
        help="Path to floor plan image",
    )
    parser.add_argument(
        "--client-id",
        type=str,
        default="local",
        help="Client whose floor plan receives the rooms (default: local)",
    )
    parser.add_argument(
        "--canvas-width",
        type=int,
        default=980,
        help="Editor canvas width (default: 980)",
    )
    parser.add_argument(
        "--canvas-height",
        type=int,
        default=700,
        help="Editor canvas height (default: 700)",
    )
    parser.add_argument(
        "--params",
        type=str,
        help="JSON file with detection parameters",
    )
    parser.add_argument(
        "--store-dir",
        type=str,
        help="Save the result into a floor plan store in this directory",
    )
    parser.add_argument(
        "--replace",
        action="store_true",
        help="Replace stored rooms instead of appending detected ones",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="outputs",
        help="Directory for the overlay and rooms JSON (default: outputs)",
    )
    parser.add_argument(
        "--truth",
        type=str,
        help="JSON file of expected room boxes; scores the run and logs it",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show debug logging",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not Path(args.image).exists():
        print(f"❌ Error: Image file not found: {args.image}", file=sys.stderr)
        return 1

    try:
        params = DetectionParams.from_json(args.params) if args.params else DetectionParams()
    except (OSError, ValueError) as e:
        print(f"❌ Error: Invalid parameters: {e}", file=sys.stderr)
        return 1

    store = JsonFloorPlanStore(args.store_dir) if args.store_dir else None
    document = store.load_floor_plan(args.client_id) if store else None
    editor = FloorPlanEditor.from_document(document) if document else FloorPlanEditor(args.client_id)
    editor.reference_image_path = str(args.image)

    try:
        print(f"\n🏗️  Interpreting floor plan: {args.image}\n")
        image = load_image(args.image)
        detected = editor.interpret_image(image, args.canvas_width, args.canvas_height, params=params)
    except ImageDecodeError as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1
    except RasterUnavailable as e:
        print(f"❌ Error: {e}. Add rooms manually instead.", file=sys.stderr)
        return 1

    if not detected:
        print("⚠️  No enclosed rooms detected. Try a clearer image or add rooms manually.")
        return 0

    rooms = editor.apply_detected(detected, replace=args.replace)
    print(f"   Interpreted {len(detected)} room{'' if len(detected) == 1 else 's'}")
    print("\n" + generate_room_report(rooms, editor.legend, editor.sections))

    output_dir = Path(args.output_dir)
    output_dir.mkdir(exist_ok=True, parents=True)
    base_name = Path(args.image).stem

    overlay = draw_rooms(image, detected, (args.canvas_width, args.canvas_height), editor.legend)
    overlay_path = output_dir / f"{base_name}_rooms.png"
    cv2.imwrite(str(overlay_path), overlay)
    print(f"\n   ✓ Overlay: {overlay_path}")

    rooms_path = output_dir / f"{base_name}_rooms.json"
    with open(rooms_path, "w") as f:
        json.dump([room.model_dump() for room in detected], f, indent=2)
    print(f"   ✓ Rooms: {rooms_path}")

    if store:
        store.save_floor_plan(
            editor.client_id,
            editor.rooms,
            editor.legend,
            editor.sections,
            editor.reference_image_path,
        )
        print(f"   ✓ Saved floor plan for {editor.client_id}")

    if args.truth:
        with open(args.truth, "r") as f:
            expected = json.load(f)
        metrics = evaluate_detection(detected, expected)
        summary = metrics.summary()
        print(
            f"\n📏 Precision {summary['precision']:.2f}, recall {summary['recall']:.2f}, "
            f"F1 {summary['f1']:.2f}"
        )
        TuningLog(str(output_dir / "tuning")).log_run(base_name, params, metrics)

    print("\n✅ Done! Drag and resize the rooms in the editor to correct them.\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
