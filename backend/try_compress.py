"""
Manual smoke script: compress an image against a running server and download the result.
Usage: python try_compress.py [image_path] [target_percentage] [output_format]
"""
import requests
import json
import mimetypes
import os
import sys
from pathlib import Path

# Configuration
API_URL = os.getenv("IMAGEHUB_URL", "http://localhost:5000")
IMAGE_PATH = "test_images/sample.jpg"
TIMEOUT = 60


def download_result(download_url: str, destination: Path):
    """
    Fetch a compressed artifact from /api/download.

    Returns:
        Path of the saved file or None if failed
    """
    response = requests.get(f"{API_URL}{download_url}", timeout=TIMEOUT)
    if response.status_code != 200:
        print(f"   ❌ Download failed with status {response.status_code}")
        return None
    destination.write_bytes(response.content)
    print(f"   💾 Saved to {destination} ({len(response.content):,} bytes)")
    return destination


def try_compress(image_path: str, target_percentage: int = 50, output_format: str = "original"):
    """
    Send an image to /api/compress and print the response.

    Args:
        image_path: Path to the image file
        target_percentage: Desired size as a percentage of the original
        output_format: jpeg, png, webp, avif or original

    Returns:
        The response data if successful, None otherwise
    """
    print("=" * 60)
    print("Testing /api/compress Endpoint")
    print("=" * 60)

    if not os.path.exists(image_path):
        print(f"❌ Error: Image not found at {image_path}")
        return None

    file_size = os.path.getsize(image_path)
    mime_type = mimetypes.guess_type(image_path)[0] or 'application/octet-stream'

    print(f"\n📁 Image Info:")
    print(f"   Path: {image_path}")
    print(f"   Size: {file_size:,} bytes ({file_size / 1024:.2f} KB)")
    print(f"   Target: {target_percentage}% -> ~{file_size * target_percentage // 100:,} bytes")

    try:
        with open(image_path, 'rb') as img_file:
            files = {'image': (os.path.basename(image_path), img_file, mime_type)}
            data = {'targetPercentage': str(target_percentage), 'outputFormat': output_format}

            print(f"\n⏳ Processing...")
            response = requests.post(f"{API_URL}/api/compress", files=files, data=data, timeout=TIMEOUT)

        print(f"\n📥 Response:")
        print(f"   Status Code: {response.status_code}")
        result = response.json()
        print(json.dumps(result, indent=2))

        if response.status_code != 200:
            return None

        payload = result['data']
        print(f"\n   ✅ Quality {payload['qualityUsed']} after {payload['attempts']} attempts, "
              f"saved {payload['savings']}")
        download_result(payload['downloadUrl'], Path(image_path).with_name(payload['filename']))
        return payload

    except requests.exceptions.ConnectionError:
        print(f"\n❌ Connection Error!")
        print(f"   Make sure the Flask server is running at {API_URL}")
        return None

    except requests.exceptions.Timeout:
        print(f"\n❌ Request Timeout!")
        print(f"   The server took too long to respond (> {TIMEOUT}s)")
        return None


if __name__ == "__main__":
    path = sys.argv[1] if len(sys.argv) > 1 else IMAGE_PATH
    target = int(sys.argv[2]) if len(sys.argv) > 2 else 50
    fmt = sys.argv[3] if len(sys.argv) > 3 else "original"
    try_compress(path, target, fmt)
