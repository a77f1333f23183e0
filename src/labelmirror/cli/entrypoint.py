#!/usr/bin/env python3
"""
entrypoint.py
- Command-line entrypoint for the label mirror (`label-mirror` console script).
- Usage:
    label-mirror -n kube-system --name node-labels [--prefix kubernetes.io] [--once]

- Exit status: 0 after a clean drain, 1 on configuration faults, 2 when the
  cluster or the document store stays unreachable.
"""

import argparse
import sys

from loguru import logger

from labelmirror.core.cancellation import CancellationToken, install_signal_handlers
from labelmirror.core.config import configure_logging, load_settings, resolve_config_file
from labelmirror.core.config_loader import preview_yaml
from labelmirror.core.errors import ConfigFault, ConnectionFault
from labelmirror.runner import label_mirror

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_CONNECTION = 2


def build_parser():
    parser = argparse.ArgumentParser(
        prog="label-mirror",
        description="Mirror namespaced node labels into a single key-value document.",
    )
    parser.add_argument("-n", "--namespace", "--ns", dest="namespace", help="Namespace where the document lives")
    parser.add_argument("--name", "--cm-name", dest="name", help="Name of the mirror document")
    parser.add_argument("--prefix", help="Label namespace to mirror (default: kubernetes.io)")
    parser.add_argument("--kubeconfig", help="Path of kubeconfig (default: ~/.kube/config, then in-cluster)")
    parser.add_argument("--source", choices=["kubernetes", "swarm"], help="Where node labels come from")
    parser.add_argument("--store", choices=["configmap", "file"], help="Where the mirror document is kept")
    parser.add_argument("--store-path", dest="store_path", help="Root directory for the file store")
    parser.add_argument("--persist", dest="persist_policy", choices=["drain", "write-through"], help="When to write the document")
    parser.add_argument("--bootstrap", dest="bootstrap_policy", choices=["rebuild", "adopt"], help="What to do with an existing document")
    parser.add_argument("--once", dest="run_once", action="store_const", const=True, help="Mirror the current snapshot and exit")
    parser.add_argument("--dry-run", dest="dry_run", action="store_const", const=True, help="Log document writes instead of performing them")
    parser.add_argument("--debug", action="store_const", const=True, help="Verbose logging")
    parser.add_argument("--config", dest="config_file", help="YAML config file (mirror: section)")
    return parser


def main(argv=None, cancel_token=None, source=None, store=None):
    args = build_parser().parse_args(argv)
    overrides = {key: value for key, value in vars(args).items() if key != "config_file"}

    try:
        settings = load_settings(overrides, config_file=args.config_file)
    except ConfigFault as e:
        configure_logging()
        logger.error(f"[cli] ❌ {e}")
        return EXIT_CONFIG

    configure_logging(debug=settings.debug)
    preview_yaml(resolve_config_file(args.config_file), name="config.yml")

    token = cancel_token or CancellationToken()
    install_signal_handlers(token, on_resync=lambda: label_mirror.active_loop and label_mirror.active_loop.request_resync())

    try:
        label_mirror.run(settings, cancel_token=token, source=source, store=store)
    except ConfigFault as e:
        logger.error(f"[cli] ❌ {e}")
        return EXIT_CONFIG
    except ConnectionFault as e:
        logger.error(f"[cli] ❌ Unrecoverable connection fault during {e.operation}: {e}")
        return EXIT_CONNECTION

    logger.info("[cli] Label mirror drained cleanly.")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
