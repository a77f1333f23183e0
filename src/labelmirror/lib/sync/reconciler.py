#!/usr/bin/env python3
"""
reconciler.py
- Event-driven reconciliation loop that keeps the label mirror document in step with the cluster.
- Bootstrapping: list every node once, read or create the mirror document.
- Syncing: fold the node watch stream into the mapping; resubscribe with backoff on stream faults.
- Draining: persist the final mapping when cancelled, then stop.

The loop thread is the only writer of the mapping. The watch stream is read on a
daemon pump thread that only enqueues; cancellation and resync requests land in
the same inbox, so waiting on the inbox is the single suspension point.
"""

import queue
import threading
import time

from loguru import logger
from tenacity import RetryCallState, Retrying, retry_if_exception, retry_if_exception_type, stop_after_attempt, stop_any, wait_exponential

from labelmirror.core.cancellation import CancellationToken
from labelmirror.core.constants import (
    BACKOFF_MAX,
    BACKOFF_MIN,
    BACKOFF_MULTIPLIER,
    BOOTSTRAP_CREATE_ATTEMPTS,
    DEFAULT_DRAIN_ATTEMPTS,
    DEFAULT_RESUBSCRIBE_ATTEMPTS,
    PUMP_JOIN_TIMEOUT,
)
from labelmirror.core.errors import AlreadyExistsFault, ConnectionFault, NotFoundFault, StreamFault
from labelmirror.core.models import BootstrapPolicy, EventType, LoopState, MirrorDocument, PersistPolicy
from labelmirror.lib.sync.label_index import LabelIndex
from labelmirror.lib.sync.label_projector import LabelProjector

# --- Metrics ---
events_applied_total = 0
stream_errors_total = 0
resubscribes_total = 0
resyncs_total = 0
persist_total = 0
persist_failures_total = 0
last_persist_duration_seconds = 0.0

# --- Inbox Markers ---
_WAKE = object()
_RESYNC = object()
_CLOSED = object()

# --- Session Outcomes ---
CANCELLED = "cancelled"
CLOSED = "closed"


def _unprogressed_connection_fault(exc):
    return isinstance(exc, ConnectionFault) and not getattr(exc, "progressed", False)


class ReconciliationLoop:
    """
    Mirrors projected node labels into one document.

    Args:
        source: NodeSource with list_nodes(), watch_nodes() and stop().
        store: DocumentStore with get(name), create(name, data) and apply(name, data).
        document_name (str): Name of the mirror document.
        projector (LabelProjector): Defaults to the `kubernetes.io` prefix.
        cancel_token (CancellationToken): Cancelling it moves the loop to Draining.
        persist_policy (PersistPolicy): `drain` persists only at shutdown,
            `write-through` after every change as well.
        bootstrap_policy (BootstrapPolicy): What to do with an existing document:
            `rebuild` replaces it with the snapshot, `adopt` keeps its contents.
        resubscribe_attempts (int): Consecutive stream faults tolerated before giving up.
        drain_attempts (int): Attempts at the final persist.
        backoff: tenacity wait strategy between retries.
        one_shot (bool): Skip Syncing; bootstrap, persist and stop.
    """

    def __init__(
        self,
        source,
        store,
        document_name,
        projector=None,
        cancel_token=None,
        persist_policy=PersistPolicy.DRAIN,
        bootstrap_policy=BootstrapPolicy.REBUILD,
        resubscribe_attempts=DEFAULT_RESUBSCRIBE_ATTEMPTS,
        drain_attempts=DEFAULT_DRAIN_ATTEMPTS,
        backoff=None,
        one_shot=False,
    ):
        self.source = source
        self.store = store
        self.document_name = document_name
        self.projector = projector or LabelProjector()
        self.token = cancel_token or CancellationToken()
        self.persist_policy = PersistPolicy(persist_policy)
        self.bootstrap_policy = BootstrapPolicy(bootstrap_policy)
        self.resubscribe_attempts = resubscribe_attempts
        self.drain_attempts = drain_attempts
        self.backoff = backoff or wait_exponential(multiplier=BACKOFF_MULTIPLIER, min=BACKOFF_MIN, max=BACKOFF_MAX)
        self.one_shot = one_shot

        self.state = LoopState.BOOTSTRAPPING
        self.data = {}
        self.index = LabelIndex()
        self.document = None

        self._inbox = queue.Queue()
        self._generation = 0
        self._pump = None
        self._dirty = False
        self._resync_pending = False

        self.token.add_callback(lambda: self._inbox.put((None, _WAKE)))

    # --- Entrypoint ---
    def run(self):
        """
        Drive the loop from Bootstrapping to Stopped.

        Returns:
            dict: The final mirrored mapping.

        Raises:
            ConnectionFault: Bootstrapping failed, the resubscribe budget ran out,
                or the final persist failed after all retries.
        """
        self.bootstrap()

        if self.one_shot:
            logger.info("[reconciler] One-shot mode, skipping watch, draining immediately.")
        else:
            try:
                self.sync()
            except ConnectionFault as e:
                logger.critical(f"[reconciler] Giving up on the node watch after repeated failures: {e}")
                self._final_flush()
                raise

        self.drain()
        return dict(self.data)

    # --- Bootstrapping ---
    def bootstrap(self):
        self._set_state(LoopState.BOOTSTRAPPING)
        entities = self.source.list_nodes()
        for entity in entities:
            self.index.upsert(entity.name, self.projector.project(entity.labels))
        snapshot = self.index.data()
        logger.info(f"[reconciler] Snapshot of {len(entities)} node(s) projects {len(snapshot)} key(s)")

        document, created = self._read_or_create(snapshot)
        self.document = document

        if created:
            self.data = snapshot
        elif self.bootstrap_policy is BootstrapPolicy.ADOPT:
            logger.info(f"[reconciler] Adopting existing document {self.document_name} ({len(document.data)} key(s))")
            self.data = dict(document.data)
        else:
            self.data = snapshot
            if document.data != snapshot:
                logger.info(f"[reconciler] Existing document {self.document_name} is stale, rebuilding from snapshot")
                self._persist("bootstrap")

    def _read_or_create(self, snapshot):
        for attempt in range(BOOTSTRAP_CREATE_ATTEMPTS):
            try:
                return self.store.get(self.document_name), False
            except NotFoundFault:
                logger.info(f"[reconciler] Document {self.document_name} not found, creating it")

            try:
                document = self.store.create(self.document_name, dict(snapshot))
                logger.info(f"[reconciler] ✅ Created document {self.document_name} with {len(snapshot)} key(s)")
                return document, True
            except AlreadyExistsFault:
                logger.info(f"[reconciler] Document {self.document_name} was created concurrently, re-reading")

        raise ConnectionFault("bootstrap", self.document_name, cause=f"create/read race not settled after {BOOTSTRAP_CREATE_ATTEMPTS} attempts")

    # --- Syncing ---
    def sync(self):
        self._set_state(LoopState.SYNCING)
        while not self.token.cancelled:
            retryer = Retrying(
                stop=stop_any(stop_after_attempt(self.resubscribe_attempts + 1), self._stop_if_cancelled),
                wait=self.backoff,
                sleep=self._sleep,
                retry=retry_if_exception(_unprogressed_connection_fault),
                before_sleep=self._before_resubscribe,
                reraise=True,
            )
            try:
                outcome = retryer(self._session)
            except StreamFault as e:
                if self.token.cancelled:
                    break
                if not e.progressed:
                    raise
                # Progress resets the failure budget, not the wait before resubscribing.
                delay = self.backoff(RetryCallState(retryer, fn=None, args=(), kwargs={}))
                self._record_stream_fault(e, delay)
                self._resync_pending = True
                self._sleep(delay)
                continue
            except ConnectionFault:
                if self.token.cancelled:
                    break
                raise

            if outcome == CANCELLED:
                break
            logger.debug("[reconciler] Watch stream closed by the server, resubscribing")

    def _session(self):
        """One watch subscription. Returns CANCELLED or CLOSED, raises on stream faults."""
        if self.token.cancelled:
            return CANCELLED
        if self._resync_pending:
            self.resync()
            self._resync_pending = False

        generation = self._open_stream()
        progressed = False
        try:
            while True:
                tag, item = self._inbox.get()
                if item is _WAKE:
                    if self.token.cancelled:
                        return CANCELLED
                    continue
                if item is _RESYNC:
                    self.resync()
                    continue
                if tag != generation:
                    continue
                if item is _CLOSED:
                    return CLOSED
                if item.type is EventType.ERROR:
                    raise StreamFault(item.reason, progressed=progressed)
                self.apply_event(item)
                progressed = True
        finally:
            self._close_stream()

    def _open_stream(self):
        self._generation += 1
        generation = self._generation
        stream = self.source.watch_nodes()
        self._pump = threading.Thread(
            target=self._pump_events, args=(generation, stream), name=f"watch-{generation}", daemon=True
        )
        self._pump.start()
        logger.debug(f"[reconciler] Watch subscription #{generation} opened")
        return generation

    def _close_stream(self):
        self._generation += 1
        try:
            self.source.stop()
        except Exception as e:
            logger.warning(f"[reconciler] Failed to stop watch stream cleanly: {e}")

    def _pump_events(self, generation, stream):
        try:
            for event in stream:
                if generation != self._generation:
                    return
                self._inbox.put((generation, event))
        except ConnectionFault as e:
            self._inbox.put((generation, _StreamFailure(str(e))))
            return
        except Exception as e:
            logger.exception(f"[reconciler] Watch stream #{generation} crashed: {e}")
            self._inbox.put((generation, _StreamFailure(repr(e))))
            return
        self._inbox.put((generation, _CLOSED))

    def _record_stream_fault(self, fault, delay):
        global stream_errors_total, resubscribes_total
        stream_errors_total += 1
        resubscribes_total += 1
        logger.warning(f"[reconciler] Watch stream failed ({fault}), resyncing and resubscribing in {delay:.1f}s")

    def _before_resubscribe(self, retry_state):
        global stream_errors_total, resubscribes_total
        fault = retry_state.outcome.exception()
        stream_errors_total += 1
        resubscribes_total += 1
        self._resync_pending = True
        logger.warning(
            f"[reconciler] Watch failure {retry_state.attempt_number}/{self.resubscribe_attempts + 1} "
            f"({fault}); retrying in {retry_state.next_action.sleep:.1f}s"
        )

    def _stop_if_cancelled(self, retry_state):
        return self.token.cancelled

    def _sleep(self, seconds):
        self.token.wait(seconds)

    def request_resync(self):
        """Ask the loop to re-list every node at its next wakeup. Safe from any thread."""
        self._inbox.put((None, _RESYNC))

    def resync(self):
        """
        Re-list all nodes and merge the listing into the mapping: nodes missing
        from the list are released, the rest are upserted.
        """
        global resyncs_total
        entities = self.source.list_nodes()
        live = {entity.name for entity in entities}
        touched = set()
        for name in self.index.names() - live:
            logger.info(f"[reconciler] Node {name} vanished while unwatched, releasing its labels")
            touched |= self.index.release(name)
        for entity in entities:
            touched |= self.index.upsert(entity.name, self.projector.project(entity.labels))
        resyncs_total += 1
        changed = self._refresh(touched)
        logger.info(f"[reconciler] Resynced {len(entities)} node(s){', mapping changed' if changed else ''}")
        self._after_change(changed)
        return changed

    # --- Event Application ---
    def apply_event(self, event):
        """
        Fold one Added/Modified/Deleted event into the mapping.

        Returns:
            bool: True if the visible mapping changed.
        """
        global events_applied_total
        kind = event.type
        entity = event.entity if kind is not EventType.ERROR else None

        if kind is EventType.ADDED or kind is EventType.MODIFIED:
            touched = self.index.upsert(entity.name, self.projector.project(entity.labels))
        elif kind is EventType.DELETED:
            touched = self.projector.removal_keys(entity.labels) | set(self.index.projection(entity.name))
            self.index.release(entity.name)
        else:
            raise TypeError(f"apply_event cannot handle {kind!r}; stream errors are handled by the watch session")

        changed = self._refresh(touched)
        events_applied_total += 1
        logger.debug(f"[reconciler] {kind.value} {entity.name}: {len(touched)} key(s) touched, changed={changed}")
        self._after_change(changed)
        return changed

    def _refresh(self, keys):
        changed = False
        for key in keys:
            value = self.index.resolve(key)
            if value is None:
                if key in self.data:
                    del self.data[key]
                    changed = True
            elif self.data.get(key) != value:
                self.data[key] = value
                changed = True
        return changed

    def _after_change(self, changed):
        if changed:
            self._dirty = True
        if self._dirty and self.persist_policy is PersistPolicy.WRITE_THROUGH:
            try:
                self._persist("write-through")
            except ConnectionFault as e:
                logger.warning(f"[reconciler] Write-through persist failed, will retry on next change: {e}")

    # --- Draining ---
    def drain(self):
        self._set_state(LoopState.DRAINING)
        self._stop_subscription()
        retryer = Retrying(
            stop=stop_after_attempt(self.drain_attempts),
            wait=self.backoff,
            retry=retry_if_exception_type(ConnectionFault),
            before_sleep=self._before_drain_retry,
            reraise=True,
        )
        try:
            retryer(self._persist, "drain")
        except ConnectionFault as e:
            logger.error(f"[reconciler] ❌ Final persist of {self.document_name} failed after {self.drain_attempts} attempt(s): {e}")
            self._set_state(LoopState.STOPPED)
            raise
        self._set_state(LoopState.STOPPED)

    def _before_drain_retry(self, retry_state):
        logger.warning(
            f"[reconciler] Drain persist attempt {retry_state.attempt_number}/{self.drain_attempts} failed "
            f"({retry_state.outcome.exception()}); retrying in {retry_state.next_action.sleep:.1f}s"
        )

    def _final_flush(self):
        self._set_state(LoopState.DRAINING)
        self._stop_subscription()
        try:
            self._persist("final flush")
        except ConnectionFault as e:
            logger.error(f"[reconciler] Final flush of {self.document_name} failed: {e}")
        self._set_state(LoopState.STOPPED)

    def _stop_subscription(self):
        # The session already stopped the stream; only wait briefly for its thread.
        pump, self._pump = self._pump, None
        if pump is not None and pump is not threading.current_thread():
            pump.join(timeout=PUMP_JOIN_TIMEOUT)

    # --- Persistence ---
    def _persist(self, reason):
        global persist_total, persist_failures_total, last_persist_duration_seconds
        start_time = time.time()
        payload = dict(self.data)
        try:
            self.store.apply(self.document_name, payload)
        except ConnectionFault as e:
            persist_failures_total += 1
            logger.warning(f"[reconciler] Persist ({reason}) of {self.document_name} failed: {e}")
            raise
        finally:
            last_persist_duration_seconds = time.time() - start_time

        persist_total += 1
        self._dirty = False
        self.document = MirrorDocument(name=self.document_name, data=payload, exists=True)
        logger.info(f"[reconciler] Persisted {len(payload)} key(s) to {self.document_name} ({reason})")

    def _set_state(self, state):
        if state is not self.state:
            logger.info(f"[reconciler] {self.state.value} → {state.value}")
        self.state = state


class _StreamFailure:
    """Pump-side stand-in for a StreamError when reading the stream raised."""

    type = EventType.ERROR

    def __init__(self, reason):
        self.reason = reason
