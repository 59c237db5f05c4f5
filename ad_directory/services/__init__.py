from .directory import ActiveDirectory, LookupStatus, UserLookup, ad_cfg_from_env  # noqa: F401
