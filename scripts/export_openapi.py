#!/usr/bin/env python
"""Export the FastAPI OpenAPI schema to concierge/openapi.yaml."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import yaml


def main() -> None:
    repo_root = Path(__file__).resolve().parent.parent

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--output",
        type=Path,
        default=repo_root / "concierge" / "openapi.yaml",
        help="Where to write the schema.",
    )
    args = parser.parse_args()

    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))

    from concierge.actions.base import DEFAULT_SERVICES, ServiceCatalog  # noqa: WPS433
    from concierge.actions.memory import InMemoryBookingService  # noqa: WPS433
    from concierge.extractor.rules import RuleBasedExtractor  # noqa: WPS433
    from concierge.main import create_app  # noqa: WPS433
    from concierge.protocol.service import ConfirmationProtocol  # noqa: WPS433
    from concierge.protocol.store import PendingConfirmationStore  # noqa: WPS433
    from concierge.protocol.tokens import OpaqueTokenIssuer  # noqa: WPS433

    # Schema export needs no history database or booking backend.
    catalog = ServiceCatalog(DEFAULT_SERVICES)
    protocol = ConfirmationProtocol(
        extractor=RuleBasedExtractor(catalog),
        catalog=catalog,
        bookings=InMemoryBookingService(catalog),
        store=PendingConfirmationStore(OpaqueTokenIssuer()),
    )
    schema = create_app(protocol=protocol).openapi()
    args.output.write_text(yaml.dump(schema, sort_keys=False, allow_unicode=True), encoding="utf-8")
    print(f"Wrote {args.output}")


if __name__ == "__main__":
    main()
