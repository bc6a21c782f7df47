import argparse
import logging
import sys

from muezzin.core.app import MuezzinApp


def setup_basic_logging():
    """Setup basic stdout logging before config is loaded"""
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        ))
        root_logger.addHandler(handler)
        root_logger.setLevel(logging.DEBUG)
        logging.debug("Basic logging initialized")


def main(argv=None):
    setup_basic_logging()

    parser = argparse.ArgumentParser(description='Muezzin prayer times sync service')
    parser.add_argument('--config',
                        help='Path to config file (default: ~/.muezzin/config.yaml)')
    parser.add_argument('--sync-once', action='store_true',
                        help='Run one sync cycle and exit (exit code 1 on errors)')

    args = parser.parse_args(argv)

    app = MuezzinApp(config_path=args.config)
    if args.sync_once:
        report = app.reconciler.run_cycle()
        app.shutdown()
        return 0 if report.is_ok else 1
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
