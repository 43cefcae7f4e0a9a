import threading
from datetime import datetime, timezone

import pytest

from analysis import analyze
from conftest import FakeQuoteProvider, make_bars
from integrations.quotes import QuoteFetchError
from tracker import (
    AlreadyTrackedError,
    NotTrackedError,
    RecomputeTask,
    SymbolConfig,
    SymbolStore,
    TrackedSymbol,
)


class TestRegistration:

    def test_register_then_register_fails(self, store):
        store.register('AAPL', 0.1)
        with pytest.raises(AlreadyTrackedError):
            store.register('AAPL', 0.2)
        assert store.get_config('AAPL').tolerance == 0.1

    def test_deregister_then_register(self, store):
        store.register('AAPL', 0.1)
        store.deregister('AAPL')
        assert 'AAPL' not in store
        store.register('AAPL', 0.3)
        assert store.get_config('AAPL') == SymbolConfig(tolerance=0.3)

    def test_default_tolerance(self, store, monkeypatch):
        monkeypatch.delenv('TRACKER_DEFAULT_TOLERANCE', raising=False)
        store.register('MSFT')
        assert store.get_config('MSFT').tolerance == 0.05

    def test_blank_ticker_rejected(self, store):
        with pytest.raises(ValueError):
            store.register('  ')

    @pytest.mark.parametrize('op', ['deregister', 'get_config', 'get_info'])
    def test_unknown_ticker(self, store, op):
        with pytest.raises(NotTrackedError) as exc:
            getattr(store, op)('NOPE')
        assert exc.value.ticker == 'NOPE'

    def test_set_config(self, store):
        store.register('AAPL', 0.1)
        store.set_config('AAPL', SymbolConfig(tolerance=0.5))
        assert store.get_config('AAPL').tolerance == 0.5
        with pytest.raises(NotTrackedError):
            store.set_config('NOPE', SymbolConfig())

    def test_list_tracked(self, store):
        for t in ('AAPL', 'MSFT', 'GOOG'):
            store.register(t)
        assert store.list_tracked() == {'AAPL', 'MSFT', 'GOOG'}
        store.deregister('MSFT')
        assert store.list_tracked() == {'AAPL', 'GOOG'}
        assert len(store) == 2

    def test_concurrent_duplicate_registration(self, store):
        barrier = threading.Barrier(16)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            try:
                store.register('AAPL')
                outcome = 'ok'
            except AlreadyTrackedError:
                outcome = 'dup'
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results.count('ok') == 1
        assert results.count('dup') == 15


class TestRecomputation:

    def test_result_published(self, store, bars):
        store.register('AAPL', 0.05)
        assert store.join(timeout=5)
        info = store.get_info('AAPL')
        assert info == analyze(bars, 0.05)
        assert info.last_close == 9

    def test_fetch_uses_window_and_timeout(self, store, provider):
        store.register('AAPL')
        store.join(timeout=5)
        ticker, start, end, timeout = provider.calls[0]
        assert ticker == 'AAPL'
        assert timeout == 2
        assert 88 <= (end - start).days <= 92

    def test_info_empty_until_task_finishes(self, gated_provider):
        store = SymbolStore(provider=gated_provider, fetch_timeout=1)
        store.register('AAPL')
        assert gated_provider.wait_entered()
        assert store.get_info('AAPL').is_empty
        gated_provider.release()
        assert store.join(timeout=5)
        assert not store.get_info('AAPL').is_empty

    def test_fetch_failure_leaves_result_untouched(self, failing_provider, caplog):
        store = SymbolStore(provider=failing_provider)
        store.register('NOPE')
        assert store.join(timeout=5)
        assert store.get_info('NOPE').is_empty
        assert 'NOPE' in store.list_tracked()
        assert "Error getting quote history for 'NOPE'" in caplog.text

    def test_empty_history_leaves_result_untouched(self):
        store = SymbolStore(provider=FakeQuoteProvider(bars=[]))
        store.register('AAPL')
        assert store.join(timeout=5)
        assert store.get_info('AAPL').is_empty

    def test_deregister_during_recomputation(self, gated_provider):
        store = SymbolStore(provider=gated_provider)
        store.register('AAPL', 0.1)
        assert gated_provider.wait_entered()
        orphan = store._get('AAPL')

        store.deregister('AAPL')
        store.register('AAPL', 0.2)
        current = store._get('AAPL')
        assert current is not orphan

        gated_provider.release()
        assert store.join(timeout=5)
        assert orphan.task.symbol is orphan
        assert not orphan.get_info().is_empty
        assert store.get_info('AAPL') is current.get_info()
        assert store.get_config('AAPL').tolerance == 0.2

    def test_no_torn_reads(self, gated_provider, bars):
        store = SymbolStore(provider=gated_provider)
        store.register('AAPL', 0.05)
        expected = analyze(bars, 0.05)
        seen = []
        stop = threading.Event()

        def reader():
            while not stop.is_set():
                seen.append(store.get_info('AAPL'))

        readers = [threading.Thread(target=reader) for _ in range(4)]
        for r in readers:
            r.start()
        gated_provider.release()
        store.join(timeout=5)
        stop.set()
        for r in readers:
            r.join()

        assert seen
        assert all(info.is_empty or info == expected for info in seen)

    def test_on_result_callback(self, provider):
        calls = []
        store = SymbolStore(provider=provider, on_result=lambda t, r: calls.append((t, r.last_close)))
        store.register('AAPL')
        store.join(timeout=5)
        assert calls == [('AAPL', 9.0)]

    def test_failing_callback_is_contained(self, provider, caplog):
        def boom(ticker, result):
            raise RuntimeError("slack down")

        store = SymbolStore(provider=provider, on_result=boom)
        store.register('AAPL')
        store.join(timeout=5)
        assert not store.get_info('AAPL').is_empty
        assert 'slack down' in caplog.text

    def test_shutdown_drops_pending_results(self, gated_provider):
        store = SymbolStore(provider=gated_provider)
        store.register('AAPL')
        assert gated_provider.wait_entered()
        threading.Timer(0.05, gated_provider.release).start()
        assert store.shutdown(timeout=5)
        assert store.get_info('AAPL').is_empty


class TestRecomputeTask:

    def test_three_calendar_month_window(self, provider):
        symbol = TrackedSymbol('AAPL', SymbolConfig(tolerance=0.05))
        end = datetime(2024, 5, 31, tzinfo=timezone.utc)
        task = RecomputeTask(symbol, provider, lookback_months=3, timeout=4, clock=lambda: end)
        task.run()
        _, start, got_end, timeout = provider.calls[0]
        assert got_end == end
        assert start == datetime(2024, 2, 29, tzinfo=timezone.utc)
        assert timeout == 4
        assert task.done
        assert task.error is None

    def test_error_recorded(self):
        symbol = TrackedSymbol('NOPE', SymbolConfig())
        task = RecomputeTask(symbol, FakeQuoteProvider(error=QuoteFetchError("boom")))
        task.run()
        assert isinstance(task.error, QuoteFetchError)
        assert symbol.get_info().is_empty

    def test_cancelled_task_does_not_publish(self, provider):
        symbol = TrackedSymbol('AAPL', SymbolConfig())
        task = RecomputeTask(symbol, provider)
        task.cancel()
        task.run()
        assert task.cancelled
        assert symbol.get_info().is_empty


class TestBulkLoad:

    def test_three_lines_one_failing(self, store):
        store.register('MSFT')
        outcomes = store.load_from_list(['AAPL', 'MSFT', 'GOOG'])
        assert store.list_tracked() == {'AAPL', 'MSFT', 'GOOG'}
        errors = {t: e for t, e in outcomes}
        assert errors['AAPL'] is None
        assert isinstance(errors['MSFT'], AlreadyTrackedError)
        assert errors['GOOG'] is None

    def test_bulk_tolerance(self, store, monkeypatch):
        monkeypatch.delenv('TRACKER_BULK_TOLERANCE', raising=False)
        store.load_from_list(['AAPL'])
        assert store.get_config('AAPL').tolerance == 0.15

    def test_blank_lines_and_whitespace(self, store):
        outcomes = store.load_from_list(['  AAPL ', '', '   ', 'GOOG\n'])
        assert [t for t, _ in outcomes] == ['AAPL', 'GOOG']
        assert store.list_tracked() == {'AAPL', 'GOOG'}

    def test_duplicate_lines_report_in_order(self, store):
        outcomes = store.load_from_list(['AAPL', 'GOOG', 'AAPL'])
        assert [t for t, _ in outcomes] == ['AAPL', 'GOOG', 'AAPL']
        assert outcomes[0][1] is None
        assert isinstance(outcomes[2][1], AlreadyTrackedError)

    def test_load_file(self, store, tmp_path):
        path = tmp_path / 'tickers.txt'
        path.write_text("AAPL\nMSFT\nGOOG\n")
        outcomes = store.load_file(path, default_tolerance=0.2)
        assert len(outcomes) == 3
        assert store.list_tracked() == {'AAPL', 'MSFT', 'GOOG'}
        assert store.get_config('GOOG').tolerance == 0.2

    def test_missing_file(self, store, tmp_path):
        with pytest.raises(OSError):
            store.load_file(tmp_path / 'missing.txt')
