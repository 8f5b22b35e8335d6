# example.py
# A small example demonstrating how to use the freeze_dry
# library to save a web page as one self-contained HTML file.

import asyncio
import logging
from pathlib import Path

from freeze_dry import FreezeDryError, freeze_dry

# --- Configuration ---
# You can enable logging to see which subresources are fetched and
# which of them could not be archived.
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

TARGET_URL = "https://example.com/"
OUTPUT = Path("example.html")


async def main():
    """
    Capture the page, save it, and report what could not be archived.
    """
    print(f"[*] Capturing: {TARGET_URL}\n")

    try:
        # This is the primary API call. It handles everything:
        # - Fetching the page and every image, stylesheet, font and frame it uses.
        # - Inlining each of them as a data: URL.
        # - Stripping scripts and adding a restrictive Content-Security-Policy.
        result = await freeze_dry(TARGET_URL)
    except FreezeDryError as e:
        print(f"\n[!] The capture failed: {e}")
        return

    OUTPUT.write_text(result.html, encoding="utf-8")
    print(f"Saved {len(result.html)} characters to {OUTPUT}")

    # Subresources that failed keep their absolute URL; the capture still succeeds.
    if result.errors:
        print("\n--- Errors Encountered ---")
        for error in result.errors:
            print(f"- {error}")


if __name__ == "__main__":
    # The library is async, so we use asyncio.run() to start it.
    asyncio.run(main())
