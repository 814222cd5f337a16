"""
Command Line Interface for the Intel Pipeline.

Usage Examples:
--------------

# Batch run, wait for the result and print a summary
python -m intel_pipeline.cli run "Acme Dominicana"

# Stream steps as they complete
python -m intel_pipeline.cli run "Acme Dominicana" --stream

# Limit depth and sources, no courtesy delay, save the result as JSON
python -m intel_pipeline.cli run "Acme" -d 1 --domains ONAPI SCJ --delay 0 -o acme.json

# Show a stored run
python -m intel_pipeline.cli show 7c9e6679-7425-40de-944b-e07fc1f90ae7 --steps

# Continue a stored run
python -m intel_pipeline.cli resume 7c9e6679-7425-40de-944b-e07fc1f90ae7

# Start the HTTP API
python -m intel_pipeline.cli serve --port 8080

# Create / validate configuration
python -m intel_pipeline.cli config --create-default -o config/default.yaml
python -m intel_pipeline.cli config --validate config/my_config.yaml
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .config.pipeline_config import ConfigLoader, validate_config
from .core.run_service import AppConfig, RunService
from .core.streaming import EVENT_COMPLETE, EVENT_ERROR, EVENT_STEP, EVENT_SUMMARY
from .errors import ConfigError, PersistenceError
from .pipeline.pipeline_data import PipelineResult


def setup_logging(verbose: bool = False):
    """
    Setup logging configuration.

    Args:
        verbose: Enable debug-level logging if True
    """
    level = logging.DEBUG if verbose else logging.INFO

    log_dir = Path('logs')
    log_dir.mkdir(exist_ok=True)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_dir / 'pipeline.log')
        ]
    )

    # Set third-party loggers to WARNING to reduce noise
    if not verbose:
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('requests').setLevel(logging.WARNING)


def load_config(path: str) -> AppConfig:
    logger = logging.getLogger(__name__)
    if path:
        logger.info(f"Loading configuration from {path}")
        config = ConfigLoader.load_from_yaml(path)
    else:
        logger.info("Using default configuration")
        config = ConfigLoader.create_default_config()
    validate_config(config)
    return config


def print_result(result: PipelineResult, show_steps: bool = False):
    """Print a run summary, optionally with one line per step."""
    print("\n" + "=" * 60)
    print("PIPELINE RESULT")
    print("=" * 60)
    print(f"Execution ID:      {result.id}")
    print(f"Query:             {result.config.query}")
    print(f"Status:            {result.status}")
    print(f"Total Steps:       {result.total_steps}")
    print(f"Successful Steps:  {result.successful_steps}")
    print(f"Failed Steps:      {result.failed_steps}")
    print(f"Max Depth Reached: {result.max_depth_reached}")

    if show_steps:
        print("\nSteps:")
        print("-" * 60)
        for step in result.steps:
            state = "ok " if step.success else "ERR"
            print(f"  [{state}] d{step.depth} {step.domain_type:15} {step.category:15} "
                  f"{step.search_parameter!r} ({len(step.output)} records)")
            if step.error:
                print(f"         {step.error}")
    print("=" * 60 + "\n")


def run_command(args):
    """
    Execute the run command.

    Args:
        args: Parsed command-line arguments
    """
    logger = logging.getLogger(__name__)
    service = None

    try:
        config = load_config(args.config)
        service = RunService.from_config(config)
        overrides = {}
        if args.delay is not None:
            overrides['delay_between_steps'] = args.delay
        if args.domains:
            overrides['available_domains'] = args.domains
        if args.max_steps is not None:
            overrides['max_total_steps'] = args.max_steps
        skip_duplicates = False if args.allow_duplicates else None

        if args.stream:
            stream = service.stream_run(args.query, args.max_depth, skip_duplicates, **overrides)
            try:
                for event in stream:
                    if event.event == EVENT_STEP:
                        step = event.data['step']
                        state = "ok " if step['success'] else "ERR"
                        print(f"[{event.data['step_number']:3}] {state} d{step['depth']} "
                              f"{step['domain_type']:15} {step['search_parameter']!r}")
                    elif event.event == EVENT_SUMMARY:
                        print(f"Summary: {json.dumps(event.data, default=str)}")
                    elif event.event == EVENT_ERROR:
                        print(f"Error: {event.data.get('message')}")
                    elif event.event == EVENT_COMPLETE:
                        print(f"Complete: {event.data.get('total_steps')} steps")
            except KeyboardInterrupt:
                logger.info("\nRun interrupted by user")
            finally:
                stream.close()
                stream.join(timeout=10)
            result = stream.result
        else:
            execution_id = service.start_run(args.query, args.max_depth, skip_duplicates, **overrides)
            print(f"Execution ID: {execution_id}")
            result = service.wait(execution_id, timeout=args.timeout)
            if result is None:
                print(f"Run still in progress after {args.timeout}s; poll it later with 'show'")
                return

        if result is not None:
            print_result(result, show_steps=args.show_steps)
            if args.output:
                Path(args.output).parent.mkdir(parents=True, exist_ok=True)
                with open(args.output, 'w', encoding='utf-8') as f:
                    json.dump(result.to_dict(), f, indent=2, default=str, ensure_ascii=False)
                print(f"✓ Result written to {args.output}")

    except ConfigError as e:
        print(f"✗ Configuration error: {e}")
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    except PersistenceError as e:
        print(f"✗ Storage error: {e}")
        logger.error(f"Storage error: {e}")
        sys.exit(1)

    finally:
        if service is not None:
            service.close()


def show_command(args):
    """Print a stored run."""
    service = None
    try:
        config = load_config(args.config)
        service = RunService.from_config(config)
        result = service.store.load_result(args.execution_id)
        print_result(result, show_steps=args.steps)
    except (ConfigError, PersistenceError) as e:
        print(f"✗ {e}")
        sys.exit(1)
    finally:
        if service is not None:
            service.close()


def resume_command(args):
    """Resume a stored run and wait for it."""
    service = None
    try:
        config = load_config(args.config)
        service = RunService.from_config(config)
        execution_id = service.resume_run(args.execution_id)
        result = service.wait(execution_id, timeout=args.timeout)
        if result is None:
            print(f"Run still in progress after {args.timeout}s")
            return
        print_result(result)
    except (ConfigError, PersistenceError) as e:
        print(f"✗ {e}")
        sys.exit(1)
    finally:
        if service is not None:
            service.close()


def serve_command(args):
    """Start the HTTP API with uvicorn."""
    import uvicorn

    from .server import create_app

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"✗ Configuration error: {e}")
        sys.exit(1)

    service = RunService.from_config(config)
    app = create_app(service, cors_origins=config.server.cors_origins)
    uvicorn.run(app,
                host=args.host or config.server.host,
                port=args.port or config.server.port)


def config_command(args):
    """
    Execute the config command.

    Args:
        args: Parsed command-line arguments
    """
    logger = logging.getLogger(__name__)

    try:
        if args.create_default:
            config = ConfigLoader.create_default_config()
            output_path = args.output or 'config/default.yaml'
            ConfigLoader.save_to_yaml(config, output_path)
            print(f"✓ Default configuration created at: {output_path}")
            logger.info(f"Default configuration created at {output_path}")

        elif args.validate:
            print(f"Validating configuration: {args.validate}")
            config = ConfigLoader.load_from_yaml(args.validate)
            validate_config(config)
            print(f"✓ Configuration is valid: {args.validate}")

        else:
            print("Error: Please specify --create-default or --validate")
            sys.exit(1)

    except ConfigError as e:
        print(f"✗ Configuration error: {e}")
        logger.error(f"Configuration error: {e}")
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='intel-pipeline',
        description='Intel Pipeline - keyword-driven public-record search',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s run "Acme Dominicana"
  %(prog)s run "Acme" -d 1 --domains ONAPI SCJ --stream
  %(prog)s show <execution-id> --steps
  %(prog)s serve --port 8080
  %(prog)s config --create-default -o config/default.yaml
        """
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose (debug) logging'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # ========================================================================
    # RUN COMMAND
    # ========================================================================
    run_parser = subparsers.add_parser('run', help='Run the pipeline for a query')
    run_parser.add_argument('query', help='Seed query (company or person name, tax id)')
    run_parser.add_argument('-c', '--config', help='Path to YAML configuration file')
    run_parser.add_argument('-d', '--max-depth', type=int, metavar='N',
                            help='Maximum expansion depth (0 = seed steps only)')
    run_parser.add_argument('--max-steps', type=int, metavar='N',
                            help='Maximum number of steps in the run')
    run_parser.add_argument('--allow-duplicates', action='store_true',
                            help='Search the same keyword against a domain more than once')
    run_parser.add_argument('--delay', type=float, metavar='SECONDS',
                            help='Courtesy delay between steps')
    run_parser.add_argument('--domains', nargs='+', metavar='DOMAIN',
                            help='Only search these domains (e.g. ONAPI SCJ DGII PGR)')
    run_parser.add_argument('--stream', action='store_true',
                            help='Print each step as it completes')
    run_parser.add_argument('-t', '--timeout', type=float, metavar='SECONDS',
                            help='Stop waiting for a batch run after this long')
    run_parser.add_argument('--show-steps', action='store_true', help='Print every step')
    run_parser.add_argument('-o', '--output', metavar='FILE', help='Write the result as JSON')
    run_parser.set_defaults(func=run_command)

    # ========================================================================
    # SHOW / RESUME COMMANDS
    # ========================================================================
    show_parser = subparsers.add_parser('show', help='Show a stored run')
    show_parser.add_argument('execution_id')
    show_parser.add_argument('-c', '--config', help='Path to YAML configuration file')
    show_parser.add_argument('--steps', action='store_true', help='Print every step')
    show_parser.set_defaults(func=show_command)

    resume_parser = subparsers.add_parser('resume', help='Continue a stored run')
    resume_parser.add_argument('execution_id')
    resume_parser.add_argument('-c', '--config', help='Path to YAML configuration file')
    resume_parser.add_argument('-t', '--timeout', type=float, metavar='SECONDS')
    resume_parser.set_defaults(func=resume_command)

    # ========================================================================
    # SERVE COMMAND
    # ========================================================================
    serve_parser = subparsers.add_parser('serve', help='Start the HTTP API')
    serve_parser.add_argument('-c', '--config', help='Path to YAML configuration file')
    serve_parser.add_argument('--host', help='Bind address')
    serve_parser.add_argument('--port', type=int, help='Bind port')
    serve_parser.set_defaults(func=serve_command)

    # ========================================================================
    # CONFIG COMMAND
    # ========================================================================
    config_parser = subparsers.add_parser('config', help='Configuration management')
    config_parser.add_argument('--create-default', action='store_true',
                               help='Create a default configuration file')
    config_parser.add_argument('--validate', metavar='FILE', help='Validate a configuration file')
    config_parser.add_argument('-o', '--output', metavar='FILE',
                               help='Output path for created configuration (default: config/default.yaml)')
    config_parser.set_defaults(func=config_command)

    return parser


def main():
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    setup_logging(args.verbose)

    if hasattr(args, 'func'):
        args.func(args)
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == '__main__':
    main()
