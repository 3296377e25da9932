"""splunkctl -- command-line client for the Splunk Enterprise REST API.

The package is built around an asynchronous request-execution core that
handles the parts of talking to a Splunk management port that are easy to
get wrong: session login and expiry, retry with exponential backoff over
transient failures, paginated result retrieval, and fan-out of the same
query across many configured profiles.

Typical workflow::

    splunkctl config set-profile prod --base-url https://splunk:8089 --api-token env:SPLUNK_TOKEN
    splunkctl --profile prod search 'index=_internal | head 10'
    splunkctl list-all --resources indexes,health

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware profile storage and precedence resolution.
    client: The async Splunk client, retry executor and pagination.
    aggregate: Concurrent multi-profile resource aggregation.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting with Rich support.
"""

__version__ = "0.1.0"
