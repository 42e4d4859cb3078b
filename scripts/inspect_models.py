import argparse
import asyncio
import logging

from nanogpt_catalog.config import initialize_env_vars
from nanogpt_catalog.errors import CatalogError
from nanogpt_catalog.service import CatalogService


async def main(category: str) -> int:
    service = CatalogService()
    try:
        resolution = await service.resolve(category)
    except CatalogError as exc:
        print(f"Failed: {exc}")
        return 1

    origin = resolution.origin.value
    if resolution.fell_back:
        origin += f" (fallback from {resolution.preferred.value})"
    print(f"--- Resolved Models ({len(resolution.descriptors)} total, origin: {origin}) ---")
    for m in resolution.descriptors:
        flags = "vision" if m.capabilities.image_input else "text"
        marker = " [degraded]" if m.degraded else ""
        print(f"{m.id}: ctx={m.context_length} out={m.max_output_tokens} {flags}{marker}")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Print the NanoGPT catalog for a category.")
    parser.add_argument("category", nargs="?", default="all", choices=["all", "premium", "subscription"])
    args = parser.parse_args()

    initialize_env_vars()
    logging.basicConfig(level=logging.INFO, format="%(levelname)-8s | %(name)s | %(message)s")
    raise SystemExit(asyncio.run(main(args.category)))
