# backend/hunt_engine/cli/__main__.py
from __future__ import annotations

import argparse

from hunt_engine.cli.seed_demo import init_db, seed_demo


def main() -> None:
    p = argparse.ArgumentParser(prog="python -m hunt_engine.cli")
    p.add_argument("--outfitter-slug", default="demo")
    p.add_argument("--outfitter-name", default="Demo Outfitters")
    p.add_argument("--admin-email", default="owner@demo.local")
    p.add_argument("--client-email", default="client@demo.local")
    p.add_argument("--init-db", action="store_true", help="create tables before seeding")
    p.add_argument("--no-sample-hunt", action="store_true")
    args = p.parse_args()

    if args.init_db:
        init_db()

    out = seed_demo(
        outfitter_slug=args.outfitter_slug,
        outfitter_name=args.outfitter_name,
        admin_email=args.admin_email,
        client_email=args.client_email,
        create_sample_hunt=(not args.no_sample_hunt),
    )
    print(
        {
            "ok": True,
            "outfitter_slug": out.outfitter_slug,
            "admin_email": out.admin_email,
            "client_email": out.client_email,
            "pricing_items": out.pricing_item_count,
            "sample_hunt_id": out.hunt_id,
        }
    )


if __name__ == "__main__":
    main()
