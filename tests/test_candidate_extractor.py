from acquisition.candidate_extractor import CandidateExtractor
from acquisition.strategies import RetailerSearchStrategy

from conftest import FakeDownloader, FakePage, image_info


def _strategy(selectors, use_fallback=True):
    return RetailerSearchStrategy(
        'shop',
        search_template='https://shop.example.com/search?q={query}',
        selectors=selectors,
        use_fallback=use_fallback,
    )


def test_selector_matches_in_selector_then_document_order(target):
    page = FakePage(selectors={
        '.hero img': [image_info('https://img/b.jpg', index=1), image_info('https://img/a.jpg', index=0)],
        '.gallery img': [image_info('https://img/c.jpg'), image_info('https://img/a.jpg')],
    })
    downloader = FakeDownloader({url: b'bytes' for url in ('https://img/a.jpg', 'https://img/b.jpg', 'https://img/c.jpg')})
    extractor = CandidateExtractor(downloader=downloader)

    candidates = list(extractor.extract(page, target, _strategy(['.hero img', '.gallery img'])))

    assert [c.source_url for c in candidates] == ['https://img/a.jpg', 'https://img/b.jpg', 'https://img/c.jpg']
    assert all(c.method == 'selector' for c in candidates)
    assert all(c.strategy_id == 'shop' for c in candidates)


def test_selector_placeholders_are_filled_from_target(target):
    page = FakePage()
    extractor = CandidateExtractor(downloader=FakeDownloader())

    list(extractor.extract(page, target, _strategy(['img[alt*="{model}"]'], use_fallback=False)))

    assert page.queried == ['img[alt*="X1"]']


def test_small_and_hidden_images_are_skipped(target):
    page = FakePage(selectors={'img': [
        image_info('https://img/thumb.jpg', width=80, height=80),
        image_info('https://img/hidden.jpg', visible=False),
        image_info('https://img/main.jpg'),
    ]})
    downloader = FakeDownloader({'https://img/main.jpg': b'x', 'https://img/thumb.jpg': b'x', 'https://img/hidden.jpg': b'x'})
    extractor = CandidateExtractor(downloader=downloader)

    candidates = list(extractor.extract(page, target, _strategy(['img'])))

    assert [c.source_url for c in candidates] == ['https://img/main.jpg']


def test_fallback_ranks_by_area_and_skips_denylisted(target):
    page = FakePage(all_images=[
        image_info('https://img/site-logo.png', width=900, height=900),
        image_info('https://img/medium.jpg', width=300, height=300),
        image_info('https://img/large.jpg', width=600, height=500),
        image_info('https://img/promo.jpg', width=700, height=700, alt='Free shipping badge'),
        image_info('https://img/tiny.jpg', width=50, height=50),
    ])
    downloader = FakeDownloader({
        'https://img/medium.jpg': b'm',
        'https://img/large.jpg': b'l',
        'https://img/site-logo.png': b'x',
        'https://img/promo.jpg': b'x',
        'https://img/tiny.jpg': b'x',
    })
    extractor = CandidateExtractor(downloader=downloader)

    candidates = list(extractor.extract(page, target, _strategy(['.missing img'])))

    assert [c.source_url for c in candidates] == ['https://img/large.jpg', 'https://img/medium.jpg']
    assert all(c.method == 'fallback' for c in candidates)


def test_fallback_not_used_when_disabled(target):
    page = FakePage(all_images=[image_info('https://img/large.jpg')])
    downloader = FakeDownloader({'https://img/large.jpg': b'l'})
    extractor = CandidateExtractor(downloader=downloader)

    candidates = list(extractor.extract(page, target, _strategy(['.missing img'], use_fallback=False)))

    assert candidates == []
    assert downloader.calls == []


def test_downloads_are_lazy(target):
    images = [image_info(f'https://img/{i}.jpg', index=i) for i in range(4)]
    page = FakePage(selectors={'img': images})
    downloader = FakeDownloader({f'https://img/{i}.jpg': b'x' for i in range(4)})
    extractor = CandidateExtractor(downloader=downloader)

    iterator = extractor.extract(page, target, _strategy(['img']))
    first = next(iterator)

    assert first.source_url == 'https://img/0.jpg'
    assert downloader.calls == ['https://img/0.jpg']


def test_failed_downloads_are_skipped_and_cap_applies(target):
    images = [image_info(f'https://img/{i}.jpg', index=i) for i in range(10)]
    page = FakePage(selectors={'img': images})
    responses = {f'https://img/{i}.jpg': b'x' for i in range(10) if i != 1}
    extractor = CandidateExtractor(max_candidates=3, downloader=FakeDownloader(responses))

    candidates = list(extractor.extract(page, target, _strategy(['img'])))

    assert [c.source_url for c in candidates] == ['https://img/0.jpg', 'https://img/2.jpg', 'https://img/3.jpg']


def test_candidates_carry_page_url(target):
    page = FakePage(selectors={'img': [image_info('https://img/a.jpg')]})
    page.goto('https://shop.example.com/p/1')
    extractor = CandidateExtractor(downloader=FakeDownloader({'https://img/a.jpg': b'a'}))

    candidate = next(extractor.extract(page, target, _strategy(['img'])))

    assert candidate.page_url == 'https://shop.example.com/p/1'
    assert candidate.data == b'a'
