#!/usr/bin/env python3
"""
burnbox CLI: pin-protected secrets that burn after the first read.

Usage:
    cli.py create --message "secret" --pin 12345 [--expire 1h]
    cli.py create --file report.pdf --pin 12345 [--content-type application/pdf]
    cli.py read <key> --pin 12345 [--output out.bin]
    cli.py is-file <key>

Settings come from BURNBOX_* environment variables (BURNBOX_SIGN_KEY is
required); global flags override them.
"""

import argparse
import logging
import mimetypes
import os
import sys
import time

from burnbox import BadPinAttemptError, BurnboxError, Config, parse_duration
from burnbox.store import ENGINES


def setup_logging(debug: bool):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stderr,
    )


def cmd_create(proc, args):
    """Create a new secret."""
    duration = parse_duration(args.expire)

    if args.file:
        if not os.path.exists(args.file):
            print(f"Error: file not found: {args.file}", file=sys.stderr)
            return 1
        with open(args.file, 'rb') as f:
            data = f.read()
        name = os.path.basename(args.file)
        content_type = (args.content_type or mimetypes.guess_type(name)[0]
                        or 'application/octet-stream')
        msg = proc.make_file_message(duration, args.pin, name, content_type, data)
        print(f"File: {name} ({len(data)} bytes, {content_type})")
    else:
        if args.message is not None:
            payload = args.message.encode('utf-8')
        else:
            payload = sys.stdin.buffer.read()
        if not payload:
            print("Error: empty message", file=sys.stderr)
            return 1
        msg = proc.make_message(duration, payload, args.pin)

    print(f"Key:     {msg.key}")
    print(f"Expires: {time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(msg.exp))}")
    return 0


def cmd_read(proc, args):
    """Reveal and burn a secret."""
    try:
        secret = proc.reveal(args.key, args.pin)
    except BadPinAttemptError as e:
        print(f"Wrong pin, {e.attempts_left} attempt(s) left", file=sys.stderr)
        return 1

    if secret.is_file:
        output = args.output or secret.filename
        with open(output, 'wb') as f:
            f.write(secret.data)
        print(f"Saved {secret.filename} ({secret.content_type}) to: {output}")
        return 0

    if args.output:
        with open(args.output, 'wb') as f:
            f.write(secret.data)
        print(f"Saved to: {args.output}")
        return 0

    try:
        print(secret.data.decode('utf-8'))
    except UnicodeDecodeError:
        print("(Binary payload, use --output to save to file)")
    return 0


def cmd_is_file(proc, args):
    """Check whether a secret is a file, without reading it."""
    is_file = proc.is_file(args.key)
    print('file' if is_file else 'text or missing')
    return 0 if is_file else 1


def build_parser():
    parser = argparse.ArgumentParser(
        description='burnbox: pin-protected secrets that burn after the first read.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Store a text secret for 30 minutes
  BURNBOX_SIGN_KEY=... %(prog)s create --message "the code is 0451" --pin 12345 --expire 30m

  # Store a file
  %(prog)s create --file contract.pdf --pin 12345

  # Read it (once)
  %(prog)s read Ab3dE6gH9jK1 --pin 12345
        """
    )
    parser.add_argument('--engine', choices=ENGINES, type=str.upper, help='Storage engine')
    parser.add_argument('--db', help='Database file (":memory:" for in-memory SQLite)')
    parser.add_argument('--sign-key', help='Server sign key')
    parser.add_argument('--pin-size', type=int, help='Pin length')
    parser.add_argument('--max-expire', help='Longest allowed lifetime, e.g. 24h')
    parser.add_argument('--pin-attempts', type=int, help='Wrong pins before a secret burns')
    parser.add_argument('--max-size', type=int, help='Largest file in bytes')
    parser.add_argument('--debug', action='store_true', help='Debug logging')

    sub = parser.add_subparsers(dest='command', help='Command')

    p_create = sub.add_parser('create', help='Create a new secret')
    p_create.add_argument('--message', '-m', help='Text to protect (default: stdin)')
    p_create.add_argument('--file', '-f', help='File to protect')
    p_create.add_argument('--content-type', help='Content type of --file')
    p_create.add_argument('--pin', '-p', required=True, help='Pin')
    p_create.add_argument('--expire', '-e', default='1h', help='Lifetime (default: 1h)')

    p_read = sub.add_parser('read', help='Reveal and burn a secret')
    p_read.add_argument('key', help='Secret key')
    p_read.add_argument('--pin', '-p', required=True, help='Pin')
    p_read.add_argument('--output', '-o', help='Output file')

    p_is_file = sub.add_parser('is-file', help='Check if a secret is a file')
    p_is_file.add_argument('key', help='Secret key')

    return parser


def load_config(args) -> Config:
    cfg = Config.from_env()
    if args.engine:
        cfg.engine = args.engine
    if args.db:
        cfg.db = args.db
    if args.sign_key:
        cfg.sign_key = args.sign_key
    if args.pin_size:
        cfg.pin_size = args.pin_size
    if args.max_expire:
        cfg.max_expire = parse_duration(args.max_expire)
    if args.pin_attempts:
        cfg.pin_attempts = args.pin_attempts
    if args.max_size:
        cfg.max_file_size = args.max_size
    cfg.debug = cfg.debug or args.debug
    return cfg


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        cfg = load_config(args)
        cfg.validate()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(cfg.debug)

    handlers = {
        'create': cmd_create,
        'read': cmd_read,
        'is-file': cmd_is_file,
    }

    try:
        engine = cfg.build_engine()
    except (BurnboxError, ValueError) as e:
        print(f"Error: can't open storage: {e}", file=sys.stderr)
        return 1

    try:
        proc = cfg.build_processor(engine)
        return handlers[args.command](proc, args)
    except (BurnboxError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        engine.close()


if __name__ == '__main__':
    sys.exit(main())
