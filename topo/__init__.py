"""
TSC frequency node labeller.

Modules:
- labels: label keys, node frequency extraction and label equality
- diff: per-node label add/remove computation
- patch: two-way merge patch construction and node patching
- filter: node eligibility predicates
- hinter: cluster-wide required frequency sources
- cache: watch-backed node store
- updater: periodic reconciliation driver
- config: settings from YAML and environment
- api: status surface for probes
"""
