import itertools

import pytest

from pagecollect.assembler import PageAssembler
from pagecollect.errors import AssemblerClosed
from pagecollect.items import PageFragment


def _page(n, total=4):
    return PageFragment(page_number=n, content=f"<p>page {n}</p>", is_finished=n == total)


@pytest.mark.parametrize("order", list(itertools.permutations([1, 2, 3, 4])))
def test_flatten_is_in_page_order_for_any_arrival_order(order):
    assembler = PageAssembler()
    for n in order:
        assembler.insert(_page(n))

    assert assembler.flatten() == "".join(f"<p>page {n}</p>" for n in range(1, 5))


def test_duplicate_page_last_write_wins():
    assembler = PageAssembler()
    assembler.insert(_page(1))
    assembler.insert(_page(2))
    assembler.insert(PageFragment(page_number=1, content="<p>retried</p>"))

    assert len(assembler) == 2
    assert assembler.page_numbers == [1, 2]
    assert assembler.flatten() == "<p>retried</p><p>page 2</p>"


def test_heading_goes_before_first_page():
    assembler = PageAssembler()
    assembler.insert(_page(2))
    assembler.insert(_page(1))
    assembler.prepend_heading("Intro")

    assert assembler.flatten().startswith('<h1 class="chapter-title">Intro</h1>\n<p>page 1</p>')
    assert len(assembler) == 2


def test_has_pages_through():
    assembler = PageAssembler()
    assembler.insert(_page(3))
    assembler.insert(_page(1))

    assert assembler.has_pages_through(1)
    assert not assembler.has_pages_through(3)

    assembler.insert(_page(2))
    assert assembler.has_pages_through(3)


def test_flushed_assembler_rejects_changes():
    assembler = PageAssembler()
    assembler.insert(_page(1))
    assembler.flatten()

    with pytest.raises(AssemblerClosed):
        assembler.insert(_page(2))
    with pytest.raises(AssemblerClosed):
        assembler.flatten()
