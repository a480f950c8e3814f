# Marks `hatch_stock.deps` as a package so `from hatch_stock.deps.auth import require_api_key` resolves.
