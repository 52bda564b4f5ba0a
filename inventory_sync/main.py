# SPDX-License-Identifier: Apache-2.0

"""NetBox dynamic inventory for Ansible.

Fetches devices from NetBox, groups them and prints them in the format of an
Ansible dynamic inventory script (``--list`` / ``--host``). It can also write
the inventory to a file once (``--write``) or keep it up to date as a service
(``--serve``).

When a refresh fails, the last-known-good snapshot from the cache file is
served with a warning; without one the command exits with status 1.
"""

import argparse
import signal
import sys
import threading
from typing import List, Optional

from loguru import logger

from .cache import InventoryCache
from .config import Config
from .exceptions import InventorySyncError
from .file_cache import SnapshotStore
from .inventory import InventoryManager, render_ansible, render_host, to_json
from .models import InventorySnapshot
from .netbox_client import NetBoxClient
from .scheduler import RefreshScheduler
from .utils import setup_logging


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="netbox-inventory", description="NetBox dynamic inventory for Ansible"
    )
    parser.add_argument("--config", help="Path to a YAML settings file")
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--list", action="store_true", help="Print the whole inventory")
    mode.add_argument("--host", metavar="NAME", help="Print the variables of one host")
    mode.add_argument("--write", action="store_true", help="Write output_path once")
    mode.add_argument("--serve", action="store_true", help="Keep output_path updated")
    parser.add_argument(
        "--cached",
        action="store_true",
        help="Use the cached snapshot without refreshing when one exists",
    )
    return parser.parse_args(argv)


def build_cache(config: Config) -> InventoryCache:
    """Wire the NetBox client, snapshot store and cache together."""
    store = SnapshotStore(config.cache_file) if config.cache_file else None
    return InventoryCache(config, NetBoxClient(config), store=store)


def obtain_snapshot(cache: InventoryCache, use_cached: bool = False) -> InventorySnapshot:
    """Refresh the inventory, falling back to the persisted snapshot.

    Raises:
        InventorySyncError: If the refresh fails and no snapshot is cached
    """
    cached = cache.load()
    if use_cached and cached is not None:
        return cached

    try:
        return cache.refresh()
    except InventorySyncError:
        if cached is None:
            raise
        logger.warning(
            f"Serving cached snapshot version {cached.version} fetched at "
            f"{cached.fetched_at.isoformat()}"
        )
        return cached


def serve(config: Config, cache: InventoryCache, manager: InventoryManager) -> None:
    """Refresh on a timer until SIGINT or SIGTERM; SIGHUP forces a refresh."""
    cache.load()
    scheduler = RefreshScheduler(
        cache,
        interval=config.refresh_interval,
        on_publish=manager.write,
        trigger_file=config.trigger_file,
    )
    stopped = threading.Event()

    def handle_stop(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        stopped.set()

    signal.signal(signal.SIGINT, handle_stop)
    signal.signal(signal.SIGTERM, handle_stop)
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, lambda signum, frame: scheduler.trigger())

    scheduler.start()
    try:
        while not stopped.wait(1.0):
            pass
    finally:
        scheduler.stop()


def main(argv: Optional[List[str]] = None) -> None:
    """Main execution function."""
    args = parse_args(argv)
    setup_logging()

    try:
        config = Config.from_environment(args.config)
        setup_logging(config.log_level, secrets=[config.token])

        cache = build_cache(config)
        manager = InventoryManager(config)

        if args.serve:
            serve(config, cache, manager)
            return

        snapshot = obtain_snapshot(cache, use_cached=args.cached)
        if args.write:
            if manager.write(snapshot) is None:
                raise InventorySyncError("output_path is required for --write")
        elif args.host:
            sys.stdout.write(to_json(render_host(snapshot, args.host)))
        else:
            sys.stdout.write(to_json(render_ansible(snapshot)))

    except InventorySyncError as e:
        logger.error(f"Failed to generate inventory from NetBox: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
