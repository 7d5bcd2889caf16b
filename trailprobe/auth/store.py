# trailprobe/auth/store.py

import os
import json
from pathlib import Path

TRAILPROBE_DIR = os.path.expanduser("~/.trailprobe")
TRAILPROBE_CRED_PATH = os.path.join(TRAILPROBE_DIR, "credentials.json")


def _load_store():
    """Load the trailprobe credential store from disk."""
    if not os.path.exists(TRAILPROBE_CRED_PATH):
        return {"active_profile": None, "profiles": {}}

    try:
        with open(TRAILPROBE_CRED_PATH, "r") as f:
            return json.load(f)
    except ValueError as e:
        raise RuntimeError(f"Credentials store {TRAILPROBE_CRED_PATH} is corrupt: {e}") from e


def _save_store(store):
    """Write credential store to disk, readable by the owner only."""
    Path(TRAILPROBE_DIR).mkdir(parents=True, exist_ok=True)

    fd = os.open(TRAILPROBE_CRED_PATH, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        json.dump(store, f, indent=4)


def save_trailprobe_profile(profile, access_key, secret_key, region):
    """Create or update a stored AWS profile and make it the active one."""
    store = _load_store()

    store.setdefault("profiles", {})[profile] = {
        "access_key": access_key,
        "secret_key": secret_key,
        "region": region
    }

    store["active_profile"] = profile

    _save_store(store)

    return TRAILPROBE_CRED_PATH


def load_trailprobe_creds(profile=None):
    """
    Return credentials dict for the given profile, or active profile if None.
    """
    store = _load_store()

    active = profile or store.get("active_profile")

    if not active:
        raise RuntimeError(
            "No active trailprobe profile configured. Run 'trailprobe auth --profile ...' first."
        )

    profiles = store.get("profiles", {})

    if active not in profiles:
        raise RuntimeError(
            f"Profile '{active}' not found in trailprobe credentials store."
        )

    return profiles[active]


def get_active_profile_or_none(profile=None):
    """
    Return (profile_name, credentials) for the named or active profile.

    None when no profile is named and none is active, so callers can fall
    back to the boto3 default credential chain. A named profile that does
    not exist is an error.
    """
    store = _load_store()
    active = profile or store.get("active_profile")

    if not active:
        return None

    profiles = store.get("profiles", {})
    if active not in profiles:
        raise RuntimeError(
            f"Profile '{active}' not found in trailprobe credentials store."
        )

    return active, profiles[active]
