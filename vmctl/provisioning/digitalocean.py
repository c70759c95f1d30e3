"""DigitalOcean provider: create/describe/delete droplets via the REST API v2."""

import json
import logging

import httpx

from vmctl.errors import NotFoundError, TransportError, ValidationError
from vmctl.provisioning.base import Provider, require_non_empty
from vmctl.provisioning.types import InstanceDescriptor, InstanceState

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.digitalocean.com"
DEFAULT_REGION = "nyc1"
DEFAULT_IMAGE = "ubuntu-22-04-x64"
DEFAULT_SIZE = "s-1vcpu-1gb"
INSTANCE_TAG = "vmctl"

DRY_RUN_DROPLET_ID = 0
DRY_RUN_IP = "192.0.2.10"

_STATUS_MAP = {
    "new": InstanceState.PENDING,
    "active": InstanceState.ACTIVE,
    "off": InstanceState.STOPPED,
    "archive": InstanceState.TERMINATED,
}


# ── Response helpers ──────────────────────────────────────────────


def parse_droplet_id(instance_id):
    """Normalise a droplet id to int. Accepts ints and all-digit strings."""
    if isinstance(instance_id, int) and not isinstance(instance_id, bool):
        return instance_id
    if isinstance(instance_id, str):
        candidate = instance_id.strip()
        if candidate.isascii() and candidate.isdigit():
            return int(candidate)
    raise ValidationError(f"You must provide an integer id for your droplet, got {instance_id!r}")


def _public_ipv4(droplet):
    """Return the first public IPv4 in ``networks.v4``, or None."""
    for network in droplet.get("networks", {}).get("v4", []):
        # Older payloads omit "type"; treat those entries as public
        if network.get("type", "public") == "public" and network.get("ip_address"):
            return network["ip_address"]
    return None


def _to_descriptor(droplet):
    image = droplet.get("image") or {}
    return InstanceDescriptor(
        id=droplet["id"],
        name=droplet.get("name", ""),
        region=(droplet.get("region") or {}).get("slug", ""),
        image=image.get("slug") or str(image.get("id", "")),
        state=_STATUS_MAP.get(droplet.get("status"), InstanceState.PENDING),
        public_ip=_public_ipv4(droplet),
    )


def _error_message(resp):
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    return body.get("message", resp.text) if isinstance(body, dict) else resp.text[:200]


# ── Provider ──────────────────────────────────────────────────────


class DigitalOceanProvider(Provider):
    """Droplet lifecycle over ``/v2/droplets`` and ``/v2/account/keys``.

    Args:
        credentials: DigitalOceanCredentials carrying the bearer token.
        size: droplet size slug used for every create call.
        transport: optional httpx transport (tests pass ``httpx.MockTransport``).
        dry_run: log requests instead of sending them.
    """

    name = "digitalocean"

    def __init__(self, credentials, size=DEFAULT_SIZE, api_url=DEFAULT_API_URL, transport=None, dry_run=False):
        self.credentials = credentials
        self.size = size
        self.api_url = api_url
        self.dry_run = dry_run
        self._transport = transport

    async def _request(self, method, path, payload=None, expected=(200,)):
        """Make an authenticated API request.

        Returns:
            Parsed JSON body, or ``None`` for empty responses and dry-run mode.
        """
        url = f"{self.api_url}{path}"

        if self.dry_run:
            logger.info(f"[dry-run] {method} {url}")
            if payload is not None:
                logger.info(f"[dry-run] payload: {json.dumps(payload, indent=2)}")
            return None

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.credentials.token}",
        }
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=60) as client:
                resp = await client.request(method, url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url}: {e}") from e

        remaining = resp.headers.get("ratelimit-remaining")
        if remaining is not None:
            logger.debug(f"Calls remaining {remaining}")

        if resp.status_code == 404:
            raise NotFoundError(f"{method} {path}: {_error_message(resp)}")
        if resp.status_code not in expected:
            raise TransportError(f"{method} {path} returned HTTP {resp.status_code}: {_error_message(resp)}")
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(f"{method} {path}: invalid JSON in response") from e

    async def resolve_ssh_key(self, key_name):
        """Map an SSH key name to the account's key id.

        Raises:
            NotFoundError: no key in the account has that name.
        """
        path = "/v2/account/keys?per_page=200"
        keys = []
        while path:
            body = await self._request("GET", path)
            if body is None:
                return "dry-run-key-id"

            page = body.get("ssh_keys", [])
            for key in page:
                if key.get("name") == key_name:
                    logger.debug(f"SSH key '{key_name}' resolved (id={key['id']}).")
                    return key["id"]
            keys.extend(page)

            next_url = ((body.get("links") or {}).get("pages") or {}).get("next")
            path = httpx.URL(next_url).raw_path.decode() if next_url else None

        available = ", ".join(k.get("name", "?") for k in keys) or "none"
        raise NotFoundError(f"No SSH key named '{key_name}' in the DigitalOcean account (available: {available})")

    async def create(self, name, region, image, ssh_key_ref):
        require_non_empty(name=name, region=region, image=image, ssh_key_ref=ssh_key_ref)

        key_id = await self.resolve_ssh_key(ssh_key_ref)
        data = {
            "name": name,
            "region": region,
            "size": self.size,
            "image": image,
            "ssh_keys": [key_id],
            "backups": False,
            "ipv6": False,
            "user_data": None,
            "private_networking": None,
            "tags": [INSTANCE_TAG],
        }
        logger.info(f"Attempting to create: {json.dumps(data)}")

        body = await self._request("POST", "/v2/droplets", data, expected=(202,))
        if body is None:
            return InstanceDescriptor(
                id=DRY_RUN_DROPLET_ID, name=name, region=region, image=image, state=InstanceState.PENDING
            )
        if "droplet" not in body:
            raise TransportError("POST /v2/droplets: response has no 'droplet' object")

        descriptor = _to_descriptor(body["droplet"])
        logger.info(f"Created droplet id {descriptor.id}")
        return descriptor

    async def describe(self, instance_id):
        droplet_id = parse_droplet_id(instance_id)

        body = await self._request("GET", f"/v2/droplets/{droplet_id}")
        if body is None:
            return InstanceDescriptor(
                id=droplet_id,
                name="dry-run-droplet",
                region=DEFAULT_REGION,
                image=DEFAULT_IMAGE,
                state=InstanceState.ACTIVE,
                public_ip=DRY_RUN_IP,
            )
        if "droplet" not in body:
            raise TransportError(f"GET /v2/droplets/{droplet_id}: response has no 'droplet' object")
        return _to_descriptor(body["droplet"])

    async def delete(self, instance_id):
        droplet_id = parse_droplet_id(instance_id)

        # Success is signalled by 204 No Content
        await self._request("DELETE", f"/v2/droplets/{droplet_id}", expected=(204,))
        if not self.dry_run:
            logger.info(f"Deleted droplet {droplet_id}")
