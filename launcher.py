#!/usr/bin/env python3
"""
dodiag command line.

Usage:
    dodiag run [--output-path DIR] [--show] [--diagnostics-archive PATH]
    dodiag error-codes
    dodiag init-config [--config PATH]

Exit codes: 0 when the run completed (whatever it found), 1 when the
output directory or the report could not be written.
"""
import argparse
import logging
import sys

from version import __version__
from dodiag.diagnostics import DiagnosticContext, default_probes, run_diagnostics
from dodiag.diagnostics.error_codes import ERROR_CODES
from dodiag.report.csv_sink import ReportWriteError, build_buffers, ensure_output_dir, write_report
from dodiag.ui.summary import print_summary
from dodiag.utils.common import CONFIG_PATH, DEFAULT_OUTPUT_DIR
from dodiag.utils.config import ConfigManager, DiagConfig, load_diag_config
from dodiag.utils.log import default_log_path, install_crash_handler, run_log_handler, setup_logging

log = logging.getLogger("launcher")

EXIT_OK = 0
EXIT_SETUP_FAILED = 1


def build_parser():
    parser = argparse.ArgumentParser(
        prog="dodiag",
        description="Delivery Optimization peer-caching diagnostics",
    )
    parser.add_argument('--version', action='version', version="%(prog)s " + __version__)
    parser.add_argument('--debug', action='store_true', help="Verbose logging")
    parser.add_argument('--json-logs', action='store_true', help="One JSON object per log line")
    parser.add_argument('--log-file', default=None,
                        help="Rotating log file (default: ~/.config/dodiag/logs/dodiag.log)")
    parser.add_argument('--config', default=None,
                        help=f"JSON settings file (default: {CONFIG_PATH})")

    sub = parser.add_subparsers(dest='command')

    run = sub.add_parser('run', help="Collect diagnostics and write the report")
    run.add_argument('--output-path', default=DEFAULT_OUTPUT_DIR,
                     help=f"Directory for the report (default: {DEFAULT_OUTPUT_DIR})")
    run.add_argument('--show', action='store_true',
                     help="Open the report in a local browser viewer when done")
    run.add_argument('--diagnostics-archive', default=None,
                     help="Existing .zip or .cab diagnostics archive to inspect")
    run.add_argument('--skip-troubleshooter', action='store_true',
                     help="Do not run the external troubleshooter script")
    run.add_argument('--troubleshooter', default=None,
                     help="Path to DeliveryOptimizationTroubleshooter.ps1")
    run.add_argument('--port', type=int, default=None, help="Report viewer port")

    sub.add_parser('error-codes', help="Print the Delivery Optimization error-code table")
    sub.add_parser('init-config', help="Write a config file with the default settings")
    return parser


def cmd_run(args, config: DiagConfig) -> int:
    if args.troubleshooter:
        config.troubleshooter_path = args.troubleshooter
    if args.port is not None:
        config.viewer_port = args.port

    try:
        ensure_output_dir(args.output_path)
    except ReportWriteError as e:
        log.critical("%s", e)
        return EXIT_SETUP_FAILED

    context = DiagnosticContext(config=config, archive_path=args.diagnostics_archive)
    probes = default_probes(context, skip_troubleshooter=args.skip_troubleshooter)
    report = run_diagnostics(context, probes)

    buffers = build_buffers(context, report.summary)
    try:
        report_dir = write_report(buffers, args.output_path)
    except ReportWriteError as e:
        log.critical("%s", e)
        return EXIT_SETUP_FAILED

    run_log = run_log_handler()
    if run_log is not None:
        try:
            run_log.save(report_dir)
        except OSError as e:
            log.warning("Could not save the run log: %s", e)

    print_summary(report, report_dir)

    if args.show:
        from dodiag.report.web_report import serve_report
        try:
            serve_report(buffers, report_dir, config.viewer_host, config.viewer_port)
        except KeyboardInterrupt:
            log.info("Report viewer stopped")
        except OSError as e:
            log.error("Could not start report viewer: %s", e)
    return EXIT_OK


def cmd_error_codes() -> int:
    width = max(len(e.code) for e in ERROR_CODES)
    for entry in ERROR_CODES:
        print(f"{entry.code:<{width}}  {entry.description}")
        print(f"{'':<{width}}  -> {entry.recommendation}")
    return EXIT_OK


def cmd_init_config(args) -> int:
    manager = ConfigManager(args.config)
    if manager.config_file.exists():
        log.error("Config file already exists: %s", manager.config_file)
        return EXIT_SETUP_FAILED
    if not manager.save_diag_config(DiagConfig()):
        return EXIT_SETUP_FAILED
    print(f"Wrote default settings to {manager.config_file}")
    return EXIT_OK


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return EXIT_OK

    setup_logging(
        level=logging.DEBUG if args.debug else logging.INFO,
        log_file=args.log_file or default_log_path(),
        console_level=logging.DEBUG if args.debug else logging.WARNING,
        structured=args.json_logs,
    )
    install_crash_handler()
    log.info("dodiag %s: %s", __version__, args.command)

    if args.command == 'error-codes':
        return cmd_error_codes()
    if args.command == 'init-config':
        return cmd_init_config(args)
    return cmd_run(args, load_diag_config(args.config))


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nExiting...")
        sys.exit(130)
