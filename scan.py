#!/usr/bin/env python
"""Standalone RFID scan CLI.

Usage:
    python scan.py --tag 04A1B2C3          # one lookup, print the card
    python scan.py                         # keyboard-wedge reader: one tag per stdin line
    python scan.py --port COM5 [--baud 9600]
    python scan.py --auto                  # serial, auto-detect port
    python scan.py --list-ports

API address comes from --api, else API_URL / rfid_student.yaml (see config.py).
Serial port falls back to RFID_PORT / the rfid.port config entry.
Stops with Ctrl+C or end of input.
"""
from __future__ import annotations
import argparse
import sys

from app_logging import get_logger
from config import load_settings
from rfid_reader import ReaderForm

log = get_logger('scan')


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="RFID scan CLI (looks up the student for each tag)")
    ap.add_argument('--api', help='Lookup service base URL')
    ap.add_argument('--tag', help='Look up a single tag and exit')
    src = ap.add_mutually_exclusive_group()
    src.add_argument('--port', help='Serial port (e.g. COM5 or /dev/ttyUSB0)')
    src.add_argument('--auto', action='store_true', help='Auto-detect first plausible serial port')
    ap.add_argument('--baud', type=int, default=None, help='Baud rate (default 9600).')
    ap.add_argument('--list-ports', action='store_true', help='List available ports and exit.')
    return ap.parse_args(argv)


def show(form: ReaderForm) -> None:
    print('\n'.join(form.render()), flush=True)
    print('-' * 32, flush=True)


def scan_lines(form: ReaderForm, lines) -> int:
    count = 0
    for line in lines:
        tag = line.strip()
        if not tag:
            continue
        form.start_scan()
        form.on_input(tag + '\n')
        show(form)
        count += 1
    return count


def main(argv=None) -> int:
    args = parse_args(argv)

    if args.list_ports:
        from serial.tools import list_ports
        for p in list_ports.comports():
            print(f"{p.device}\t{p.description}")
        return 0

    settings = load_settings()
    form = ReaderForm(api_url=(args.api or settings.api_url).rstrip('/'), timeout=settings.api_timeout)
    log.info('Scan CLI using API %s', form.api_url)

    if args.tag:
        form.set_tag(args.tag)
        form.fetch()
        show(form)
        return 0 if form.result.kind == 'record' else 1

    port = args.port or settings.rfid_port
    if args.auto:
        from rfid_input import detect_port
        port = detect_port()
        if not port:
            print('No serial ports found.', file=sys.stderr)
            return 2
        print(f'Auto-selected port: {port}')

    try:
        if port:
            from rfid_input import serial_tags
            baud = args.baud or settings.rfid_baud
            print(f"Listening for RFID scans on {port} @ {baud} baud (Ctrl+C to stop)...")
            scan_lines(form, serial_tags(port, baud, tag_len=settings.tag_len))
        else:
            print("Scan a card (Ctrl+C to stop)...", flush=True)
            scan_lines(form, sys.stdin)
    except KeyboardInterrupt:
        print("\nStopping...", flush=True)
    return 0


if __name__ == '__main__':  # pragma: no cover
    raise SystemExit(main())
