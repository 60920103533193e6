"""
Live Inventory Capture — command-line capture client

Opens the camera, burns the time / GPS / product watermark into one frame
and uploads it to the verification server, which answers with the
analysis verdict (pending or flagged).

Usage:
    python -m scripts.capture_live_photo --product prod1 --supplier sup1 \
        --product-name "Fresh Tomatoes" [--lat 30.7046 --lon 76.7179] \
        [--camera 0] [--save photo.jpg] [--retries 2] [--dry-run]
"""
import argparse
import base64
import logging
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.config.settings import get_settings
from src.core.entities.live_photo import GpsLocation
from src.core.errors import CaptureError, CapturePermissionError, TransientNetworkError, ValidationError
from src.core.use_cases.capture_live_photo import CaptureSession
from src.infrastructure.capture.http_gateway import HttpUploadGateway
from src.infrastructure.capture.opencv_capture_device import OpenCVCaptureDevice
from src.infrastructure.capture.watermark import OpenCVWatermarker


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Capture and upload a live inventory photo")
    p.add_argument("--product", required=True, help="Product id")
    p.add_argument("--supplier", required=True, help="Supplier id")
    p.add_argument("--product-name", required=True, help="Product name printed on the watermark")
    p.add_argument("--camera", type=int, default=0, help="Camera index")
    p.add_argument("--facing", choices=["environment", "user"], default="environment")
    p.add_argument("--lat", type=float, help="Latitude (no GPS line without it)")
    p.add_argument("--lon", type=float, help="Longitude")
    p.add_argument("--accuracy", type=float, default=25.0, help="GPS accuracy in meters")
    p.add_argument("--warmup", type=float, default=1.0, help="Seconds to let exposure settle")
    p.add_argument("--save", type=Path, help="Also write the watermarked JPEG here")
    p.add_argument("--retries", type=int, default=2, help="Retries on network errors")
    p.add_argument("--dry-run", action="store_true", help="Capture only, do not upload")
    return p.parse_args()


def main() -> int:
    load_dotenv()
    args = parse_args()
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    location_source = None
    if args.lat is not None and args.lon is not None:
        fix = GpsLocation(latitude=args.lat, longitude=args.lon, accuracy=args.accuracy)
        location_source = lambda: fix  # noqa: E731

    device = OpenCVCaptureDevice(
        camera_indices={args.facing: args.camera},
        location_source=location_source,
    )
    watermarker = OpenCVWatermarker(jpeg_quality=settings.capture_jpeg_quality)
    gateway = HttpUploadGateway(settings.gateway_url)

    try:
        return _run(args, settings, device, watermarker, gateway)
    finally:
        gateway.close()


def _run(args, settings, device, watermarker, gateway) -> int:
    print(f"\n📷 Capturing {args.product_name} ({args.product}) for supplier {args.supplier}")
    with CaptureSession(
        device=device,
        watermarker=watermarker,
        gateway=gateway,
        product_id=args.product,
        supplier_id=args.supplier,
        product_name=args.product_name,
        timezone_name=settings.capture_timezone,
        location_timeout_s=settings.geolocation_timeout_seconds,
    ) as session:
        try:
            session.start_capture(args.facing)
            time.sleep(args.warmup)
            image_data = session.capture_frame()
        except CapturePermissionError:
            print(f"  ❌ {session.error}")
            return 2
        except CaptureError as e:
            print(f"  ❌ Capture failed: {e}")
            return 2

        gps = session.location
        print(f"  GPS: {f'{gps.latitude:.6f}, {gps.longitude:.6f}' if gps else 'not available'}")

        if args.save:
            args.save.write_bytes(base64.b64decode(image_data.split(",", 1)[1]))
            print(f"  💾 Saved {args.save}")

        if args.dry_run:
            return 0

        for attempt in range(args.retries + 1):
            try:
                receipt = session.submit()
                break
            except TransientNetworkError:
                print(f"  ⚠️  {session.error} (attempt {attempt + 1}/{args.retries + 1})")
                if attempt == args.retries:
                    return 1
                time.sleep(2 ** attempt)
            except ValidationError as e:
                print(f"  ❌ Upload refused: {e}")
                return 1

        photo = receipt.photo
        print(f"  ✅ {receipt.message}")
        print(f"     id={photo.id} status={photo.verification_status.value}")
        if photo.status_reason:
            print(f"     reason: {photo.status_reason}")
        if photo.ai_analysis:
            ai = photo.ai_analysis
            print(
                f"     duplicate={ai.duplicate_score:.2f} retail={ai.retail_store_detected} "
                f"confidence={ai.confidence:.2f} real_time={ai.is_real_time}"
            )
    return 0


if __name__ == "__main__":
    sys.exit(main())
