"""
Command line entry point: bestest [config.yaml]
"""
import argparse
import logging
import os
import sys
from pathlib import Path

import yaml
from pydantic import ValidationError

from . import judgeconfig, report
from .config import ConfigError
from .languages import LanguageConfigError, load_language_config
from .logger import initialize_logging
from .pattern import FormatError
from .pipeline import JudgeError, run_session
from .version import add_version_arg

log = logging.getLogger(__name__)

DEFAULT_CONFIG = 'config.yaml'


def argparser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='bestest', description='Unpack, screen, run and score a batch of program submissions.')
    parser.add_argument('config', nargs='?', default=DEFAULT_CONFIG,
                        help=f'judge configuration file (default: {DEFAULT_CONFIG})')
    parser.add_argument('-j', '--threads', type=int, help='number of submissions processed concurrently')
    parser.add_argument('-t', '--timeout', type=int, metavar='MS', help='time limit per test case, in milliseconds')
    parser.add_argument('-o', '--output', help='write the report to this file instead of printing the scoreboard')
    parser.add_argument('-f', '--format', choices=[f.value for f in report.OutputFormat],
                        help='report format (default: inferred from the output file name)')
    parser.add_argument('-k', '--keep_artifacts', action='store_true',
                        help='keep the temporary workspaces after the run')
    parser.add_argument('-l', '--log_level', default='warning', help='set log level (debug, info, warning, error, critical)')
    parser.add_argument('--init', action='store_true', help='write a bare configuration file and exit')
    add_version_arg(parser)
    return parser


def write_initial_config(path: Path) -> None:
    if path.exists():
        raise ConfigError(f'{path} already exists, not overwriting it')
    log.info('creating bare config file %s', path)
    with open(path, 'w') as out:
        yaml.safe_dump(judgeconfig.default_config_dict(), out, sort_keys=False)


def load_config(args: argparse.Namespace) -> judgeconfig.Config:
    """Load the configuration file and apply command line overrides."""
    cfg = judgeconfig.load(Path(args.config))
    overrides = {}
    if args.threads is not None:
        overrides['threads'] = args.threads
    if args.timeout is not None:
        overrides['timeout_ms'] = args.timeout
    if args.keep_artifacts:
        overrides['keep_artifacts'] = True
    if not overrides:
        return cfg
    return judgeconfig.Config.model_validate(cfg.model_dump() | overrides)


def write_report(rep: report.RunReport, args: argparse.Namespace) -> None:
    if args.output is None:
        if args.format is None:
            sys.stdout.write(report.render_scoreboard(rep))
        else:
            sys.stdout.write(report.render(rep, report.OutputFormat(args.format)))
        return

    if args.format is not None:
        fmt = report.OutputFormat(args.format)
    else:
        fmt, recognized = report.detect_output_format(args.output)
        if not recognized:
            log.warning('Unrecognized report extension of %s, writing plain text', args.output)
    with open(args.output, 'w', encoding='utf-8') as out:
        out.write(report.render(rep, fmt))
    log.info('Report written to %s', os.path.realpath(args.output))


def main(argv: list[str] | None = None) -> None:
    args = argparser().parse_args(argv)
    counter = initialize_logging(args.log_level)

    try:
        if args.init:
            write_initial_config(Path(args.config))
            return
        cfg = load_config(args)
        log.debug('Config: %s', cfg)
        languages = load_language_config(cfg.languages)
        result = run_session(cfg, languages)
        write_report(report.build_report(result, cfg), args)
    except (ConfigError, LanguageConfigError, FormatError, ValidationError) as err:
        log.error('Invalid configuration: %s', err)
        sys.exit(1)
    except JudgeError as err:
        log.error('%s', err)
        sys.exit(1)
    except OSError as err:
        log.error('%s', err)
        sys.exit(1)
    finally:
        if counter.errors or counter.warnings:
            print(f'bestest finished with {counter}', file=sys.stderr)


if __name__ == '__main__':
    main()
