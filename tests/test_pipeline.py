import re

import pytest

from acquisition.candidate_extractor import CandidateExtractor
from acquisition.image_validator import ImageValidator
from acquisition.persistence import ImagePersister
from acquisition.strategies import RetailerSearchStrategy
from core.errors import BrowserLaunchError, ExtractionError
from core.models import AcquisitionFailure, StrategyFailure, ValidatedImage
from core.pipeline import PipelineDriver

from conftest import FakeBrowser, FakeDownloader, FakePage, image_info, make_image_bytes


def _shop(id, host):
    return RetailerSearchStrategy(id, search_template=f'https://{host}/search?q={{query}}', selectors=['.product img'])


def _items(count):
    return [
        {'id': f'item-{i}', 'brand': 'Acme', 'model': f'X{i}', 'category': 'driver', 'priority_score': 100 - i}
        for i in range(1, count + 1)
    ]


class StubExecutor:
    """Returns a canned image for every target, except the ones told to explode."""

    def __init__(self, browser, strategies, explode_on=(), **kwargs):
        self.browser = browser
        self.explode_on = set(explode_on)
        self.acquired = []

    def acquire(self, target):
        self.acquired.append(target.item_id)
        if target.item_id in self.explode_on:
            raise ExtractionError('page structure changed mid-extraction')
        return ValidatedImage(
            data=f'image-{target.item_id}'.encode(), width=900, height=900,
            original_width=900, original_height=900, strategy_id='stub', method='selector',
        )


def _driver(catalog, storage, browser, strategies=(), sleeps=None, **kwargs):
    return PipelineDriver(
        catalog=catalog,
        persister=ImagePersister(storage, catalog),
        strategies=list(strategies),
        browser_factory=lambda: browser,
        delay_ms=kwargs.pop('delay_ms', 2500),
        sleep=(sleeps.append if sleeps is not None else (lambda seconds: None)),
        **kwargs
    )


def test_scenario_timeout_then_rejected_then_accepted(catalog, storage):
    catalog.add_items([{'id': 'item-1', 'brand': 'Acme', 'model': 'X1', 'category': 'driver'}])
    browser = FakeBrowser({
        'https://retailer.example.com': FakePage(selectors={'.product img': [
            image_info('https://img/small.jpg', index=0),
            image_info('https://img/large.jpg', index=1),
        ]}),
    })
    downloader = FakeDownloader({
        'https://img/small.jpg': make_image_bytes((200, 200)),
        'https://img/large.jpg': make_image_bytes((900, 900)),
    })
    driver = _driver(
        catalog, storage, browser,
        strategies=[_shop('manufacturer', 'slow.example.com'), _shop('retailer', 'retailer.example.com')],
        extractor=CandidateExtractor(downloader=downloader),
        validator=ImageValidator(min_size=400, target_size=1000),
    )

    stats = driver.run(limit=10)

    assert stats.succeeded == 1
    assert stats.failed == 0
    assert stats.strategy_hits == {'retailer': 1}
    image_url = catalog.get_item('item-1').image_url
    key = storage.key_from_url(image_url)
    assert re.fullmatch(r'acme/x1-[0-9a-f]{12}\.jpg', key)
    assert browser.closed


def test_scenario_all_strategies_fail(catalog, storage):
    catalog.add_items([{'id': 'item-1', 'brand': 'Acme', 'model': 'X1', 'category': 'driver',
                        'image_url': 'https://placehold.co/400'}])
    browser = FakeBrowser()
    driver = _driver(
        catalog, storage, browser,
        strategies=[_shop('one', 'one.example.com'), _shop('two', 'two.example.com')],
        extractor=CandidateExtractor(downloader=FakeDownloader()),
    )

    stats = driver.run(limit=10)

    assert stats.failed == 1
    assert stats.succeeded == 0
    assert catalog.get_item('item-1').image_url == 'https://placehold.co/400'
    assert list(storage.root.rglob('*.jpg')) == []
    assert 'one:' in stats.failures[0]['reason'] and 'two:' in stats.failures[0]['reason']


def test_one_item_raising_does_not_stop_the_run(catalog, storage):
    catalog.add_items(_items(5))
    browser = FakeBrowser()
    executors = []

    def executor_factory(browser, strategies, **kwargs):
        executor = StubExecutor(browser, strategies, explode_on={'item-3'})
        executors.append(executor)
        return executor

    driver = _driver(catalog, storage, browser, executor_factory=executor_factory)

    stats = driver.run(limit=5)

    assert executors[0].acquired == ['item-1', 'item-2', 'item-3', 'item-4', 'item-5']
    assert stats.processed == 5
    assert stats.succeeded == 4
    assert stats.failed == 1
    assert stats.failures[0]['item_id'] == 'item-3'
    assert catalog.get_item('item-3').image_url is None
    for item_id in ('item-1', 'item-2', 'item-4', 'item-5'):
        assert catalog.get_item(item_id).image_url


def test_acquisition_failure_recorded_with_reasons(catalog, storage):
    catalog.add_items(_items(1))

    class FailingExecutor:
        def __init__(self, browser, strategies, **kwargs):
            pass

        def acquire(self, target):
            return AcquisitionFailure(target.item_id, [StrategyFailure('shop', 'no search results')])

    driver = _driver(catalog, storage, FakeBrowser(), executor_factory=FailingExecutor)

    stats = driver.run(limit=1)

    assert stats.failures == [{'item_id': 'item-1', 'name': 'Acme X1', 'reason': 'shop: no search results'}]


def test_delay_between_items_but_not_after_last(catalog, storage):
    catalog.add_items(_items(3))
    sleeps = []
    driver = _driver(
        catalog, storage, FakeBrowser(), sleeps=sleeps, delay_ms=1500,
        executor_factory=lambda browser, strategies, **kwargs: StubExecutor(browser, strategies),
    )

    driver.run(limit=3)

    assert sleeps == [1.5, 1.5]


def test_browser_not_launched_when_nothing_to_do(catalog, storage):
    launched = []
    driver = PipelineDriver(
        catalog=catalog,
        persister=ImagePersister(storage, catalog),
        strategies=[],
        browser_factory=lambda: launched.append(True),
    )

    stats = driver.run(limit=5)

    assert launched == []
    assert stats.processed == 0


def test_zero_limit_processes_nothing(catalog, storage):
    catalog.add_items(_items(2))
    launched = []
    driver = PipelineDriver(
        catalog=catalog,
        persister=ImagePersister(storage, catalog),
        strategies=[],
        browser_factory=lambda: launched.append(True),
    )

    stats = driver.run(limit=0)

    assert launched == []
    assert stats.processed == 0
    assert catalog.get_item('item-1').image_url is None


def test_browser_closed_when_run_is_interrupted(catalog, storage):
    catalog.add_items(_items(2))
    browser = FakeBrowser()

    class InterruptingExecutor:
        def __init__(self, browser, strategies, **kwargs):
            pass

        def acquire(self, target):
            raise KeyboardInterrupt

    driver = _driver(catalog, storage, browser, executor_factory=InterruptingExecutor)

    with pytest.raises(KeyboardInterrupt):
        driver.run(limit=2)

    assert browser.closed


def test_browser_launch_failure_aborts_run(catalog, storage):
    catalog.add_items(_items(1))

    def failing_factory():
        raise BrowserLaunchError('chrome not found')

    driver = PipelineDriver(
        catalog=catalog,
        persister=ImagePersister(storage, catalog),
        strategies=[],
        browser_factory=failing_factory,
    )

    with pytest.raises(BrowserLaunchError):
        driver.run(limit=1)
