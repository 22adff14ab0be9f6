#!/usr/bin/env python3

"""CLI tool to talk to a serial port through the bridge"""

import argparse
import logging
import sys
import threading

import ok_logging_setup
import uart_bridge

ok_logging_setup.skip_traceback_for(uart_bridge.SerialBridgeException)

PARITY_NAMES = {p.name.lower(): p for p in uart_bridge.Parity}
STOP_BITS_NAMES = {
    "1": uart_bridge.StopBits.ONE,
    "1.5": uart_bridge.StopBits.ONE_AND_HALF,
    "2": uart_bridge.StopBits.TWO,
}


def main():
    parser = argparse.ArgumentParser(
        description="Bridge stdin/stdout to a serial port."
    )
    parser.add_argument("device", help="device path or pyserial URL")
    parser.add_argument(
        "--baud", "-b", type=int, default=9600, help="baud rate"
    )
    parser.add_argument(
        "--parity", "-p", choices=PARITY_NAMES, default="none", help="parity"
    )
    parser.add_argument(
        "--data-bits",
        type=int,
        choices=(5, 6, 7, 8),
        default=8,
        help="data bits",
    )
    parser.add_argument(
        "--stop-bits", choices=STOP_BITS_NAMES, default="1", help="stop bits"
    )
    parser.add_argument(
        "--read-wait",
        type=int,
        default=200,
        help="milliseconds a read waits for data",
    )
    parser.add_argument("--dtr", action="store_true", help="assert DTR")
    parser.add_argument("--rts", action="store_true", help="assert RTS")
    parser.add_argument(
        "--hex",
        "-x",
        action="store_true",
        help="input lines are hex digits, not text",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="log byte traffic"
    )

    args = parser.parse_args()
    level = "uart_bridge=DEBUG,INFO" if args.verbose else "info"
    ok_logging_setup.install({"OK_LOGGING_LEVEL": level})

    opts = {
        "device": args.device,
        "baudRate": args.baud,
        "parity": int(PARITY_NAMES[args.parity]),
        "dataBits": args.data_bits,
        "stopBits": int(STOP_BITS_NAMES[args.stop_bits]),
        "readWaitMillis": args.read_wait,
        "dtr": args.dtr,
        "rts": args.rts,
    }

    bridge = uart_bridge.SerialBridge()
    done = threading.Event()
    errors: list[str] = []

    def received(payload: str):
        sys.stdout.buffer.write(uart_bridge.codec.unescape(payload))
        sys.stdout.flush()

    def failed(description: str):
        errors.append(description)
        done.set()

    def ignore(payload: str):
        pass

    bridge.register_listener(received, failed)
    bridge.open(opts, ignore, failed)
    if errors:
        ok_logging_setup.exit(f"❌ Can't open {args.device}: {errors[0]}")

    logging.info("🔌 Connected to %s (%d baud)", args.device, args.baud)
    write = bridge.write_hex if args.hex else bridge.write
    for line in sys.stdin:
        if done.is_set():
            break
        write(line.strip() if args.hex else line, ignore, failed)

    bridge.close(ignore, failed)
    if errors:
        ok_logging_setup.exit(f"❌ {args.device}: {errors[0]}")


if __name__ == "__main__":
    main()
