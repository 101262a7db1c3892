"""Client for the remote script store."""

from owlanter.remote.client import RemoteScriptStore, ScriptStoreClient, create_client

__all__ = ["RemoteScriptStore", "ScriptStoreClient", "create_client"]
