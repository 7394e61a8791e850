"""word_times: incremental per-word timing annotations for audio folders.

WHY: Running speech recognition over a whole folder of audio clips is slow.
Most runs only touch a handful of files, so redoing recognition for every
clip wastes minutes of CPU. This package keeps a content-hash cache of the
inputs and merges fresh results into the existing output files, so only
changed or missing clips are recognised again.

HOW: Three layers, leaves first:
  core.timings     : compact word-timing codec
  core.hash_cache  : MD5 change detection with stale-entry purging
  pipeline         : per-output-group diff/recognise/merge/persist loop
Transcoding and recognition engines plug in through adapters.base.

RULES:
- Output files are merged, never replaced wholesale
- The hash cache is purged and saved exactly once per run
- One file's failure never aborts its group or the run
"""

__version__ = "0.1.0"
