"""
CLI to analyze a still image -> JSON.
"""
from __future__ import annotations
import argparse, asyncio, json, logging, os
import cv2
from core.camera import bgr_to_raw_frame
from core.config import Settings
from core.detector import MediaPipeFaceDetector
from core.models import DetectedFaceSignals
from core.pipeline import prepare_frame, summarize

def main():
    p = argparse.ArgumentParser()
    p.add_argument("--image", required=True, help="Path to input image")
    p.add_argument("--faces", default=None, help="Optional JSON file with detector signals (skips the detector)")
    p.add_argument("--rotation", type=int, default=0, help="Sensor orientation in degrees")
    p.add_argument("--out", default=None, help="Optional path to output JSON")
    args = p.parse_args()

    settings = Settings()
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO))

    image = cv2.imread(args.image)
    if image is None:
        raise FileNotFoundError(f"Image not found or unreadable: {args.image}")

    detector_input, lighting = prepare_frame(bgr_to_raw_frame(image), args.rotation, settings)
    if args.faces:
        with open(args.faces, "r", encoding="utf-8") as f:
            raw = json.load(f)
        faces = [DetectedFaceSignals.model_validate(r) for r in (raw if isinstance(raw, list) else [raw])]
    else:
        detector = MediaPipeFaceDetector(settings)
        try:
            faces = asyncio.run(detector.process_image(detector_input))
        finally:
            detector.close()

    result = summarize(faces, lighting).model_dump(mode="json")
    print(json.dumps(result, indent=2, ensure_ascii=False))

    if args.out:
        folder = os.path.dirname(args.out)
        if folder:
            os.makedirs(folder, exist_ok=True)
        with open(args.out, "w", encoding="utf-8") as f:
            json.dump(result, f, indent=2, ensure_ascii=False)
        print(f"✅ Analysis written to {args.out}")

if __name__ == "__main__":
    main()
