"""
SuperMockio CLI

Command-line interface for the SuperMockio mock server.

Commands:
    serve       - Start the HTTP server
    ingest      - Generate mock responses for an OpenAPI file offline

Examples:
    # Start the server, persisting services between runs
    supermockio serve --port 8080 --data-file supermockio-data.json

    # Preview what an OpenAPI document generates
    supermockio ingest petstore.yaml

    # Pre-build a data file for `serve`
    supermockio ingest petstore.yaml --owner alice --output supermockio-data.json
"""

import argparse
import asyncio
import logging
import sys
from collections import Counter
from pathlib import Path

from .common import MockerSettings, get_ai_service, load_openapi_file
from .errors import AIGenerationError, SuperMockioError
from .mock import MemoryStore, MockConfig, MockServer, Service, ServiceIngestor
from .mock.ingestor import create_rng


def _configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )


def cmd_serve(args):
    """
    Start the SuperMockio HTTP server.

    Args:
        args: Parsed command-line arguments
    """
    _configure_logging(args.log_level)

    # SECURITY: the AI key is read from the environment only (AI_API_KEY / ANTHROPIC_API_KEY)
    settings = MockerSettings.from_env()

    print("🎭 SuperMockio")
    if settings.ai_generation_enabled:
        if not settings.ai_service_name:
            print("⚠️  Warning: AI_GENERATION_ENABLED is set but AI_SERVICE_NAME is not")
            print("   Set it with: export AI_SERVICE_NAME=anthropic")
        elif not settings.ai_api_key:
            print("⚠️  Warning: AI generation enabled but AI_API_KEY environment variable not set")
            print("   Set it with: export AI_API_KEY=your_key")
        else:
            print(f"🤖 AI generation enabled ({settings.ai_model_name})")

    config = MockConfig(
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        data_file=args.data_file,
        admin_enabled=not args.no_admin
    )

    try:
        server = MockServer(config=config, settings=settings)
    except (OSError, ValueError) as e:
        print(f"❌ Failed to load data file: {e}")
        sys.exit(1)

    server.start()


def cmd_ingest(args):
    """
    Ingest an OpenAPI file without starting the server.

    Args:
        args: Parsed command-line arguments
    """
    _configure_logging(args.log_level)

    print("📥 SuperMockio Ingest")
    print(f"   OpenAPI file: {args.openapi_file}")

    try:
        openapi = load_openapi_file(args.openapi_file)
    except (OSError, SuperMockioError) as e:
        print(f"❌ Failed to load OpenAPI document: {e}")
        sys.exit(1)

    settings = MockerSettings.from_env()
    ai_service = None
    if settings.ai_service_name:
        try:
            ai_service = get_ai_service(settings)
        except AIGenerationError as e:
            print(f"⚠️  AI service unavailable: {e}")

    info = openapi['info']
    service = Service(
        name=str(info['title']),
        version=str(info['version']),
        description=str(info.get('description') or ''),
        openapi=openapi,
        owner=args.owner
    )

    store = MemoryStore()
    if args.output and Path(args.output).exists():
        try:
            store = MemoryStore.load(args.output)
        except (OSError, ValueError) as e:
            print(f"❌ Failed to load data file: {e}")
            sys.exit(1)
        existing = store.find_service_by_identity(service.owner, service.name, service.version)
        if existing is not None:
            print(f"   Replacing existing service {service.name} {service.version}")
            store.delete_service(existing.id)

    store.add_service(service)
    ingestor = ServiceIngestor(store, ai_service=ai_service, rng=create_rng(settings.random_seed))
    records = asyncio.run(ingestor.ingest(service))

    print(f"   Service: {service.name} {service.version} (owner: {service.owner})")
    print(f"   Responses generated: {len(records)}")
    print()

    per_endpoint = Counter((r.method.upper(), r.path, r.status_code, r.example_name) for r in records)
    for (method, path, status_code, example_name), count in sorted(per_endpoint.items(), key=str):
        suffix = f" x{count}" if count > 1 else ""
        print(f"   {method:7} {path}  {status_code}  {example_name or '-'}{suffix}")

    fallbacks = sum(1 for r in records if (r.example_name or '').startswith(('fallback', 'error-fallback')))
    if fallbacks:
        print()
        print(f"⚠️  {fallbacks} response(s) use fallback content")

    if args.output:
        store.save(args.output)
        print()
        print(f"✓ Saved to {args.output}")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="SuperMockio - Mock HTTP APIs generated from OpenAPI documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start the server
  %(prog)s serve --port 8080 --data-file supermockio-data.json

  # Upload a document to a running server
  curl -X POST -H 'X-SuperMockio-User: alice' --data-binary @petstore.yaml \\
       http://127.0.0.1:8080/api/services

  # Call a mock
  curl -H 'X-SuperMockio-Status: 404' http://127.0.0.1:8080/mocks/alice/Petstore/1.0.0/pets/1

  # Generate responses offline
  %(prog)s ingest petstore.yaml --output supermockio-data.json

Environment:
  AI_GENERATION_ENABLED, AI_SERVICE_NAME, AI_API_KEY, AI_MODEL_NAME,
  AI_RATE_LIMIT_TOKENS, AI_TIMEOUT_SECONDS, MOCKER_STRICT_MODE, MOCKER_RANDOM_SEED
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # --- SERVE command ---
    serve_parser = subparsers.add_parser('serve', help='Start the HTTP server')
    serve_parser.add_argument('--host', default='127.0.0.1', help='Host to bind (default: 127.0.0.1)')
    serve_parser.add_argument('-p', '--port', type=int, default=8080, help='Port to bind (default: 8080)')
    serve_parser.add_argument('--data-file', help='JSON data file loaded on start and saved after changes')
    serve_parser.add_argument('--log-level', default='info', choices=['debug', 'info', 'warning', 'error'],
                              help='Log level (default: info)')
    serve_parser.add_argument('--no-admin', action='store_true', help='Disable admin API')

    # --- INGEST command ---
    ingest_parser = subparsers.add_parser('ingest', help='Generate mock responses for an OpenAPI file')
    ingest_parser.add_argument('openapi_file', help='OpenAPI document (YAML or JSON)')
    ingest_parser.add_argument('--owner', default='local', help='Owner of the service (default: local)')
    ingest_parser.add_argument('-o', '--output', help='Save (or update) a JSON data file')
    ingest_parser.add_argument('--log-level', default='warning', choices=['debug', 'info', 'warning', 'error'],
                               help='Log level (default: warning)')

    args = parser.parse_args()

    if args.command == 'serve':
        cmd_serve(args)
    elif args.command == 'ingest':
        cmd_ingest(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()
