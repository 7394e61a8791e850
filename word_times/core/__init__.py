"""Core change-detection, timing codec and output persistence modules.

WHY: The core package holds the parts of the system that own on-disk
state: the hash cache file, the output JSON files, and the compact timing
encoding written into them. They must stay stable across releases so old
caches and outputs keep loading.

HOW: ir.py defines the data types, timings.py encodes word timings,
hash_cache.py tracks input content hashes, output_store.py reads, validates
and writes output files. errors.py holds the shared exception taxonomy.

RULES:
- No module here knows about transcoding or recognition engines
- On-disk formats change only with a migration path
"""
