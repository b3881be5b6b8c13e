# -*- coding: utf-8 -*-
# -----------------------------------------------------------------------------
# MegaRoofControl.py - Main controller module
#
# Command line runner for the MegaRoof roll-off-roof driver
#
# -----------------------------------------------------------------------------

import sys
import argparse
import signal
import time
import traceback

import log
import MegaRoofGlobal
from MegaRoofConfig import MegaRoofConfig, MegaRoofConfigError
from roof_exceptions import MegaRoofError, OperationTimedOutError

MONITOR_INTERVAL = 2.0


def custom_excepthook(exc_type, exc_value, exc_traceback):
    """Last-chance exception handler

    Assures that any unhandled exceptions are logged to our logfile
    instead of being lost to stdout. Install only after logging is set up.
    """
    # Do not print exception when user cancels the program
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    log.logger.error(f'An uncaught {exc_type.__name__} exception occurred:')
    log.logger.error(exc_value)
    for line in traceback.format_tb(exc_traceback):
        log.logger.error(repr(line))


class MegaRoofControl:
    """Main controller class for the MegaRoof runner"""

    def __init__(self, config, logger):
        self.config = config
        self.logger = logger
        self.device = None
        self.running = False

    def start(self):
        """Create the device and connect to the roof controller"""
        self.device = MegaRoofGlobal.get_device(self.logger)
        self.device.connect()

    def shutdown(self):
        """Clean shutdown of the device"""
        self.running = False
        MegaRoofGlobal.reset_device()
        self.device = None

    def signal_handler(self, signum, frame):
        """Handle shutdown signals in monitor mode"""
        print(f"\nReceived signal {signum}. Shutting down...")
        self.running = False

    def print_status(self):
        status = self.device.status()
        fields = status['fields'] or {}
        state = 'fresh' if status['fresh'] else 'stale'
        print(f"[{state}] shutter={status['shutter']} "
              + ' '.join(f"{name}={value}" for name, value in fields.items()))

    def run_monitor(self):
        """Print the roof status until interrupted"""
        signal.signal(signal.SIGINT, self.signal_handler)
        signal.signal(signal.SIGTERM, self.signal_handler)

        self.running = True
        print("Monitoring roof status. Press Ctrl+C to stop.")
        while self.running and self.device.is_connected:
            self.print_status()
            time.sleep(MONITOR_INTERVAL)

        if not self.device.is_connected:
            print("Roof controller disconnected.")
        return 0

    def run(self, args):
        """Connect, execute one command, disconnect"""
        try:
            self.start()

            if args.command == 'status':
                # Give the controller one broadcast period to report
                self.device.cache.wait_for_fresh(self.config.poll_interval * self.config.poll_attempts)
                self.print_status()
            elif args.command == 'open':
                self.device.open_shutter()
                print(f"Roof replied, shutter {self.device.shutter_status().name}")
            elif args.command == 'close':
                self.device.close_shutter()
                print(f"Roof replied, shutter {self.device.shutter_status().name}")
            elif args.command == 'abort':
                self.device.abort()
                print("Abort sent")
            elif args.command == 'send':
                self.device.send(args.token)
                print(f"Sent {args.token}")
            elif args.command == 'query':
                print(self.device.query(args.token))
            elif args.command == 'monitor':
                return self.run_monitor()
            return 0

        except OperationTimedOutError as e:
            self.logger.warning(f"{e}")
            print(f"No reply from roof: {e}")
            return 2
        except MegaRoofError as e:
            self.logger.error(f"{type(e).__name__}: {e}")
            print(f"Roof error: {e}")
            return 1
        except ValueError as e:
            self.logger.error(f"Invalid command: {e}")
            print(f"Invalid command: {e}")
            return 1
        finally:
            self.shutdown()


def build_parser():
    parser = argparse.ArgumentParser(description='MegaRoof roll-off-roof control')
    parser.add_argument('-c', '--config', default=None,
                        help='Path to MegaRoofconfig.toml (default: ./MegaRoofconfig.toml)')
    parser.add_argument('-p', '--port', default=None,
                        help='Serial port, overrides the configured dev_port')

    subparsers = parser.add_subparsers(dest='command', required=True)
    subparsers.add_parser('status', help='Print the latest roof status')
    subparsers.add_parser('open', help='Open the roof and wait for a reply')
    subparsers.add_parser('close', help='Close the roof and wait for a reply')
    subparsers.add_parser('abort', help='Stop roof and mount movement')
    subparsers.add_parser('monitor', help='Print roof status until interrupted')
    send = subparsers.add_parser('send', help='Send a command token (e.g. FORCEOPEN)')
    send.add_argument('token')
    query = subparsers.add_parser('query', help='Query a command (e.g. RAIN)')
    query.add_argument('token')
    return parser


def main(argv=None):
    """Entry point"""
    args = build_parser().parse_args(argv)

    try:
        config = MegaRoofConfig(config_file=args.config)
        if args.port:
            config.dev_port = args.port
        logger = log.init_logging(config)
    except MegaRoofConfigError as e:
        print(f"Configuration error: {e}")
        return 1

    sys.excepthook = custom_excepthook
    MegaRoofGlobal.set_config(config)

    controller = MegaRoofControl(config, logger)
    return controller.run(args)


if __name__ == '__main__':
    sys.exit(main())
