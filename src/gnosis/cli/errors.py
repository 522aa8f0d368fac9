"""Gnosis rich error messages — actionable feedback.

Every error shown to the operator must contain:
  1. What went wrong (clear cause)
  2. The exact action to take to fix it

Usage:
    from gnosis.cli.errors import err_no_api_key, err_no_db
    console.print(err_no_api_key("openai"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_map = {
        "openai": "OPENAI_API_KEY",
        "cohere": "COHERE_API_KEY",
        "gemini": "GEMINI_API_KEY",
        "mistral": "MISTRAL_API_KEY",
        "azure": "AZURE_API_KEY",
        "voyage": "VOYAGE_API_KEY",
    }
    env_var = env_map.get(provider.lower(), f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-...  (or add it to .env)"
    )


def err_no_db(db_path: str = ".gnosis.db") -> str:
    """No knowledge-base database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  gnosis sync"
    )


def err_bucket_unreachable(bucket: str, reason: str) -> str:
    """The corpus bucket could not be listed."""
    return (
        f"[red]Error:[/] Could not list bucket '{bucket}': {reason}\n"
        "  Check storage.bucket / storage.endpoint_url in gnosis.yaml and set:\n"
        "    export GNOSIS_S3_ACCESS_KEY_ID=<key id>\n"
        "    export GNOSIS_S3_SECRET_ACCESS_KEY=<secret>"
    )


def err_config(message: str) -> str:
    """gnosis.yaml (or the global config) is invalid."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix gnosis.yaml or ~/.gnosis/config.yaml and retry."
    )


def err_dimension_mismatch(model: str, expected: int, actual: int) -> str:
    """Stored vectors and the configured embedding model disagree on size."""
    return (
        f"[red]Error:[/] Embedding dimension mismatch for '{model}'.\n"
        f"  Expected:  {expected}\n"
        f"  Got:       {actual}\n"
        "  Set embedding.dimensions to the model's vector size, or point\n"
        "  database.path at a fresh database and run:  gnosis sync"
    )


def err_embedding_failed(model: str, reason: str) -> str:
    """The embedding provider call failed."""
    return (
        f"[red]Error:[/] Embedding request to '{model}' failed.\n"
        f"  {reason}\n"
        "  Check the provider API key and embedding.model, then retry."
    )
