"""

Wireless ADB device watcher

- discovery - browses mDNS for the services Android advertises while wireless debugging is on:
    _adb-tls-connect._tcp for connections and _adb-tls-pairing._tcp while the pairing screen is open.
    ZeroconfDiscovery posts ServiceUpEvent and ServiceDownEvent with the RawService announced.
- registry - normalizes announcements into Device records (key, name, endpoint) and keeps the set
  of devices believed online.
- state - a DeviceState per device: when it was last seen and how often connecting to it failed.
  Unchanged re-announcements within a few seconds are debounced. A device that failed more than 5 times
  is ignored for 5 minutes after its last failure. Records not seen for 10 minutes are swept.
- serializer - one interaction at a time, in order. Prompts and adb commands are never interleaved.
- workflow - connecting (disconnect, connect, verify with bounded exponential backoff) and pairing
  (scoped pairing discovery, 6 digit code, adb pair).
- mirror - scrcpy launched after a successful connection, relaunched a couple of times if it fails.


## Threading

Everything runs on one asyncio event loop. The exceptions are the zeroconf service browsers, which
run on their own threads. Their events are handed to the loop (LoopEventSource) before any device
bookkeeping happens, so the registry and state maps are only ever touched from the loop.

External commands (adb, scrcpy, notify-send) run as subprocesses awaited on the loop.
Line input is read from stdin through an asyncio stream.

A long connection attempt holds up every other queued interaction until it finishes. This is intended:
only one thing at a time talks to adb or to the user.

"""
