"""
CLI utility to mint session tokens for the MCP server without the OAuth flow.

Normally /callback mints a session token after the user signs in to Sentry.
For local testing against the HTTP transport it's handy to skip that: give
this script a Sentry access token (a personal auth token works) and it signs
a session token the server will accept.

Usage examples:

    # Session for a personal auth token, defaulting to one organization
    python -m scripts.generate_token --sub 1234 --access-token sntrys_... --org my-org

    # Short-lived session (30 minutes)
    python -m scripts.generate_token --sub 1234 --access-token sntrys_... --exp-hours 0.5

    # Custom secret (must match SENTRY_JWT_SECRET_KEY on the server)
    python -m scripts.generate_token --sub 1234 --access-token sntrys_... --secret my-prod-secret

    # Expired session (for testing rejection)
    python -m scripts.generate_token --sub 1234 --access-token sntrys_... --exp-hours -1

The generated token can be used with curl:

    curl -X POST http://localhost:8080/mcp \\
      -H "Content-Type: application/json" \\
      -H "Authorization: Bearer <token>" \\
      -d '{"jsonrpc":"2.0","id":1,"method":"initialize",...}'
"""

import argparse
import datetime

from sentry_mcp.auth import issue_session_token
from sentry_mcp.config import settings


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Mint session tokens for the Sentry MCP server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Default organization:
    %(prog)s --sub 1234 --access-token sntrys_abc --org my-org

  Expired token (for testing):
    %(prog)s --sub 1234 --access-token sntrys_abc --exp-hours -1
        """,
    )

    parser.add_argument("--sub", required=True, help="Sentry user id the session belongs to")
    parser.add_argument("--name", default="", help="Sentry user name (shown in logs)")
    parser.add_argument(
        "--access-token",
        required=True,
        help="Sentry access token the session will act with",
    )
    parser.add_argument(
        "--org",
        default=None,
        help="Default organization slug for organization-scoped tools",
    )
    parser.add_argument(
        "--secret",
        default=settings.jwt_secret_key,
        help="Signing secret (must match the server's SENTRY_JWT_SECRET_KEY)",
    )
    parser.add_argument(
        "--exp-hours",
        type=float,
        default=settings.session_ttl_hours,
        help="Hours until the session expires (negative = already expired)",
    )

    args = parser.parse_args()

    token = issue_session_token(
        user_id=args.sub,
        name=args.name,
        access_token=args.access_token,
        organization_slug=args.org,
        exp_hours=args.exp_hours,
        secret=args.secret,
    )

    exp_time = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(
        hours=args.exp_hours
    )

    print(f"Subject:       {args.sub}")
    print(f"Organization:  {args.org or '(none)'}")
    print(f"Expires:       {exp_time.isoformat()}")
    print()
    print(f"Token: {token}")

    print()
    print("Usage with curl (initialize MCP session):")
    print('  curl -X POST http://localhost:8080/mcp \\')
    print('    -H "Content-Type: application/json" \\')
    print('    -H "Accept: application/json, text/event-stream" \\')
    print(f'    -H "Authorization: Bearer {token}" \\')
    print(
        '    -d \'{"jsonrpc":"2.0","id":1,"method":"initialize",'
        '"params":{"protocolVersion":"2025-03-26","capabilities":{},'
        '"clientInfo":{"name":"test","version":"1.0"}}}\''
    )


if __name__ == "__main__":
    main()
