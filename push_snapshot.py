#!/usr/bin/env python3
"""Push Minecraft data to the relay's ingestion endpoint.

  1. One-shot from a file:
     python3 push_snapshot.py --file world.json

  2. From stdin (e.g. piped from an exporter):
     exporter | python3 push_snapshot.py

  3. Re-read and push the file every N seconds:
     python3 push_snapshot.py --file world.json --interval 2
"""
import argparse, json, logging, sys, time
import requests

logger = logging.getLogger(__name__)

DEFAULT_URL = 'http://localhost:3001/minecraft-data'


def push(url: str, blob, timeout: float = 10.0) -> bool:
    r = requests.post(url, json=blob, timeout=timeout)
    r.raise_for_status()
    return bool(r.json().get('success'))


def load_blob(path):
    if path in (None, '-'):
        return json.load(sys.stdin)
    with open(path) as f:
        return json.load(f)


def main(argv=None):
    p = argparse.ArgumentParser(description='Push a JSON snapshot to the voice relay')
    p.add_argument('--url', default=DEFAULT_URL)
    p.add_argument('--file', default=None, help="JSON file to push ('-' or omitted: stdin)")
    p.add_argument('--interval', type=float, default=None,
                   help='re-read and push every N seconds')
    p.add_argument('--timeout', type=float, default=10.0)
    args = p.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(message)s')

    if args.interval and args.file in (None, '-'):
        p.error('--interval needs --file')

    while True:
        try:
            ok = push(args.url, load_blob(args.file), timeout=args.timeout)
            logger.info('Pushed snapshot to %s (success=%s)', args.url, ok)
        except (requests.RequestException, OSError, ValueError) as e:
            logger.error('Push to %s failed: %s', args.url, e)
            if not args.interval:
                return 1
        if not args.interval:
            return 0
        try:
            time.sleep(args.interval)
        except KeyboardInterrupt:
            return 0


if __name__ == '__main__':
    sys.exit(main())
