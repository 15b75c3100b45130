"""
Command-line client for the Face Widget API

Registers a reference image or verifies a burst of frames against a
running server, or runs the verification pipeline locally to inspect the
liveness and distance numbers when tuning thresholds.

Usage:
    # Register a user
    python scripts/run_verify.py register --email ada@example.com \\
        --first-name Ada --last-name Lovelace --image ref.jpg

    # Verify a burst (5 JPEG files, in capture order)
    python scripts/run_verify.py verify --email ada@example.com \\
        --frames f0.jpg f1.jpg f2.jpg f3.jpg f4.jpg

    # Run the pipeline in-process and print the metrics
    python scripts/run_verify.py local --reference ref.jpg \\
        --frames f0.jpg f1.jpg f2.jpg f3.jpg f4.jpg
"""

import argparse
import base64
import json
import sys
import time
from pathlib import Path
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

PROJECT_ROOT = Path(__file__).parent.parent.resolve()
DEFAULT_API_URL = "http://localhost:8080"


def print_banner(text: str, char: str = "="):
    line = char * 60
    print(f"\n{line}")
    print(text)
    print(line)


def encode_file(path: str) -> str:
    with open(path, "rb") as f:
        return base64.b64encode(f.read()).decode("ascii")


def post_json(url: str, payload: dict) -> tuple:
    """POST a JSON payload.

    Returns:
        (status_code, response_body_dict)
    """
    req = Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with urlopen(req, timeout=120) as resp:
            return resp.status, json.loads(resp.read().decode("utf-8"))
    except HTTPError as e:
        return e.code, json.loads(e.read().decode("utf-8") or "{}")


def run_register(args) -> int:
    payload = {
        "email": args.email,
        "first_name": args.first_name,
        "last_name": args.last_name,
        "encoded_facial_image": encode_file(args.image),
    }
    print(f"  Registering {args.email} at {args.api_url}/register ...")
    status, body = post_json(f"{args.api_url}/register", payload)
    print(f"  Status: {status}")
    print(f"  Response: {json.dumps(body, indent=2)}")
    return 0 if status == 201 else 1


def run_verify(args) -> int:
    payload = {
        "email": args.email,
        "frames": [encode_file(p) for p in args.frames],
    }
    print(f"  Sending {len(args.frames)} frames to {args.api_url}/verify ...")

    start = time.time()
    status, body = post_json(f"{args.api_url}/verify", payload)
    elapsed = time.time() - start

    print_banner("VERIFICATION RESULT")
    print(f"  Status:   {status}")
    print(f"  Decision: {'ACCEPTED' if status == 200 else 'REJECTED'}")
    print(f"  Response: {json.dumps(body)}")
    print(f"  Time:     {elapsed:.2f}s")
    return 0 if status == 200 else 1


def run_local(args) -> int:
    sys.path.insert(0, str(PROJECT_ROOT))

    from core.config import get_config
    from core.extractor import get_extractor
    from core.verification import MatchDecisionEngine

    config = get_config()
    extractor = get_extractor(config.get("extractor"))
    engine = MatchDecisionEngine(extractor, config)

    reference = extractor.extract_required(Path(args.reference).read_bytes())
    images = [Path(p).read_bytes() for p in args.frames]

    result = engine.verify_burst(reference.descriptor, images)

    print_banner("LOCAL PIPELINE RESULT")
    print(f"  Verdict:            {result.verdict.value}")
    print(f"  Frames processed:   {result.frames_processed}")
    print(f"  Identity threshold: {engine.identity_threshold}")
    if result.liveness is not None:
        print(f"  Rectangle motion:   {result.liveness.rectangle_motion:.3f} "
              f"(< {engine.liveness.max_rectangle_motion})")
        print(f"  Descriptor shift:   {result.liveness.descriptor_shift:.4f} "
              f"(> {engine.liveness.min_descriptor_shift})")
    if result.reference_distance is not None:
        print(f"  Reference distance: {result.reference_distance:.4f}")
    print(f"  Time:               {result.processing_time_ms} ms")
    return 0 if result.accepted else 1


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Face Widget API client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--api-url", type=str, default=DEFAULT_API_URL,
        help=f"API server URL (default: {DEFAULT_API_URL})",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    register = subparsers.add_parser("register", help="Register a reference image")
    register.add_argument("--email", required=True)
    register.add_argument("--first-name", required=True)
    register.add_argument("--last-name", required=True)
    register.add_argument("--image", required=True, help="Reference JPEG")

    verify = subparsers.add_parser("verify", help="Verify a burst against the server")
    verify.add_argument("--email", required=True)
    verify.add_argument("--frames", nargs=5, required=True, help="5 JPEG frames in order")

    local = subparsers.add_parser("local", help="Run the pipeline in-process")
    local.add_argument("--reference", required=True, help="Reference JPEG")
    local.add_argument("--frames", nargs=5, required=True, help="5 JPEG frames in order")

    args = parser.parse_args()

    try:
        if args.command == "register":
            return run_register(args)
        if args.command == "verify":
            return run_verify(args)
        return run_local(args)
    except URLError as e:
        reason = getattr(e, "reason", e)
        print(f"\n  ERROR: Cannot reach API server at {args.api_url}")
        print(f"  Reason: {reason}")
        print("\n  Start the server first:")
        print("    python -m api.app")
        return 2


if __name__ == "__main__":
    sys.exit(main())
