"""Search core: text processing, storage, backends and orchestration."""
