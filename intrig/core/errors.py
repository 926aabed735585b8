"""User-facing error messages with one actionable remediation step each."""

from intrig.core.result import DiscoveryError, ErrorCode

ERROR_SUGGESTIONS = {
    ErrorCode.PROJECT_NOT_FOUND: (
        "Make sure an Intrig project is initialized in this directory.\n"
        "Run `intrig init` in the project root, or check that the path is correct."
    ),
    ErrorCode.DAEMON_START_FAILED: (
        "The Intrig daemon could not be started automatically.\n"
        "Run `intrig daemon up` manually in the project directory to see detailed errors."
    ),
    ErrorCode.DAEMON_UNAVAILABLE: (
        "The Intrig daemon is not responding.\n"
        "Run `intrig daemon up` in the project directory to start it."
    ),
    ErrorCode.REGISTRY_ERROR: (
        "Could not access the Intrig project registry.\n"
        "Check that you can write to the temp directory, or set INTRIG_DISCOVERY_DIR."
    ),
    ErrorCode.REQUEST_TIMEOUT: (
        "The request to the daemon timed out.\n"
        "Try again, or restart the daemon with `intrig daemon restart`."
    ),
    ErrorCode.INVALID_RESPONSE: (
        "Received an unexpected response from the daemon.\n"
        "This usually means a version mismatch. Update Intrig: `npm update -g @intrig/core`."
    ),
    ErrorCode.RESOURCE_NOT_FOUND: (
        "The requested resource was not found.\n"
        "The ID may be stale. Search again to get current IDs."
    ),
}


def format_error(error: DiscoveryError) -> str:
    """
    Format an error message followed by its remediation step.

    Args:
        error: The error to render

    Returns:
        Multi-line message suitable for terminal output
    """
    lines = [f"Error: {error.message}"]
    suggestion = ERROR_SUGGESTIONS.get(error.code)
    if suggestion:
        lines.append("")
        lines.append(suggestion)
    return "\n".join(lines)


def format_no_projects_message() -> str:
    return (
        "No registered Intrig projects found.\n\n"
        "To get started:\n"
        "1. Navigate to your project directory\n"
        "2. Run `intrig init` to initialize Intrig\n"
        "3. Run `intrig daemon up` to start the daemon\n\n"
        "The daemon registers itself so other tools can discover it."
    )
