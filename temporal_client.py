"""Temporal client factory.

Creates connections to Temporal (Cloud or a local dev server) using
credentials from environment.
"""

import os
from pathlib import Path
from typing import Optional, Union

# Load .env file if it exists
from dotenv import load_dotenv
env_path = Path(__file__).resolve().parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

from temporalio.client import Client
from temporalio.service import TLSConfig


def _tls_config(cert_path: Optional[str], key_path: Optional[str]) -> Union[TLSConfig, bool]:
    """mTLS config when a client certificate is configured, else plain TLS."""
    if not cert_path:
        return True
    key_file = key_path or cert_path
    return TLSConfig(
        client_cert=Path(cert_path).read_bytes(),
        client_private_key=Path(key_file).read_bytes(),
    )


async def get_temporal_client() -> Client:
    """Create and return a Temporal client.

    Reads configuration from environment variables:
    - TEMPORAL_ENDPOINT: Temporal endpoint (e.g., "temporal.example.com:7233")
    - TEMPORAL_NAMESPACE: Namespace (default "default")
    - TEMPORAL_API_KEY: Cloud API key; omit for a local dev server
    - TEMPORAL_CERT_PATH: Client certificate for mTLS (optional)
    - TEMPORAL_KEY_PATH: Client private key for mTLS (defaults to the cert file)

    Returns:
        Connected Temporal client

    Raises:
        ValueError: If TEMPORAL_ENDPOINT is not set
    """
    endpoint = os.getenv("TEMPORAL_ENDPOINT")
    namespace = os.getenv("TEMPORAL_NAMESPACE", "default")
    api_key = os.getenv("TEMPORAL_API_KEY")
    cert_path = os.getenv("TEMPORAL_CERT_PATH")
    key_path = os.getenv("TEMPORAL_KEY_PATH")

    if not endpoint:
        raise ValueError(
            "TEMPORAL_ENDPOINT environment variable not set. "
            "Set to your Temporal endpoint (e.g., 'localhost:7233')"
        )

    # Local dev server: no credentials, no TLS
    if not api_key and not cert_path:
        return await Client.connect(endpoint, namespace=namespace)

    return await Client.connect(
        endpoint,
        namespace=namespace,
        tls=_tls_config(cert_path, key_path),
        api_key=api_key,
    )
