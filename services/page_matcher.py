"""Sequential-with-fallback matching of submitted images to expected workbook pages"""
import logging
from typing import Iterable, List, NamedTuple, Optional, Sequence, Set, Tuple

from models.submission_models import ExpectedPage, PageMatch, SubmittedPage
from services.hash_comparator import calculate_similarity
from utils.config import HASH_BITS, SEQUENTIAL_MATCH_THRESHOLD, SIMILARITY_THRESHOLD

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SCAN = 100


class SubmittedImage(NamedTuple):
    original_index: int
    fingerprint: Optional[str]


def determine_start_page(submitted_pages: Iterable[SubmittedPage], total_pages: int = 0) -> int:
    """
    Lowest page number in 1..total_pages not yet accepted in the ledger.

    Returns 1 for a fresh ledger and also when every page is already
    accepted, so a resubmitted workbook is matched from the first page again.
    An unknown page count (0) scans up to DEFAULT_PAGE_SCAN.
    """
    accepted = {p.pageNumber for p in submitted_pages if p.passed}
    for page_number in range(1, (total_pages or DEFAULT_PAGE_SCAN) + 1):
        if page_number not in accepted:
            return page_number
    return 1


def _best_candidate(
    fingerprint: Optional[str],
    pages: Sequence[ExpectedPage],
    consumed: Set[int],
    hash_bits: int,
) -> Tuple[Optional[int], float]:
    best_page = None
    best_similarity = 0.0
    for page in pages:
        if not page.fingerprint or page.pageNumber in consumed:
            continue
        similarity = calculate_similarity(fingerprint, page.fingerprint, hash_bits)
        # Strictly greater: ties keep the lower page number
        if similarity > best_similarity:
            best_page = page.pageNumber
            best_similarity = similarity
    return best_page, best_similarity


def find_best_match(
    fingerprint: Optional[str],
    pages: Sequence[ExpectedPage],
    consumed: Optional[Set[int]] = None,
    threshold: float = SIMILARITY_THRESHOLD,
    hash_bits: int = HASH_BITS,
) -> Optional[Tuple[int, float]]:
    """
    Highest-similarity unconsumed page at or above `threshold`.

    Pages without a fingerprint are never candidates here, so an image can
    only reach them through positional matching.

    Returns:
        (page_number, similarity) or None
    """
    page_number, similarity = _best_candidate(fingerprint, pages, consumed or set(), hash_bits)
    if page_number is None or similarity < threshold:
        return None
    return page_number, similarity


def _sequential_match(
    fingerprint: Optional[str],
    pool: Sequence[ExpectedPage],
    consumed: Set[int],
    threshold: float,
    hash_bits: int,
) -> Optional[Tuple[int, Optional[float]]]:
    for page in pool:
        if page.pageNumber in consumed:
            continue
        if not page.fingerprint:
            # No ground truth: trust the page order
            return page.pageNumber, None
        similarity = calculate_similarity(fingerprint, page.fingerprint, hash_bits)
        if similarity >= threshold:
            return page.pageNumber, similarity
    return None


def match_images_to_pages(
    images: Sequence[SubmittedImage],
    expected_pages: Sequence[ExpectedPage],
    start_page: int = 1,
    sequential_threshold: float = SEQUENTIAL_MATCH_THRESHOLD,
    acceptance_threshold: float = SIMILARITY_THRESHOLD,
    hash_bits: int = HASH_BITS,
) -> List[PageMatch]:
    """
    Assign each submitted image to at most one expected page.

    Images are handled in original order. Each first tries the pages from
    `start_page` upward, accepting the first page that is similar enough
    (`sequential_threshold`) or has no fingerprint. Failing that, every
    unconsumed page is searched for the best match at or above
    `acceptance_threshold`. A page is consumed by at most one image.

    Returns:
        One PageMatch per image, ordered by original index. Unmatched images
        carry pageNumber=None, passed=False and the best similarity seen.
    """
    ordered_pages = sorted(expected_pages, key=lambda p: p.pageNumber)
    pool = [p for p in ordered_pages if p.pageNumber >= start_page]
    consumed: Set[int] = set()
    results = []

    for image in sorted(images, key=lambda i: i.original_index):
        sequential = _sequential_match(image.fingerprint, pool, consumed, sequential_threshold, hash_bits)
        if sequential is not None:
            page_number, similarity = sequential
            consumed.add(page_number)
            results.append(PageMatch(
                originalIndex=image.original_index,
                pageNumber=page_number,
                similarity=similarity,
                passed=True
            ))
            continue

        fallback = find_best_match(image.fingerprint, ordered_pages, consumed, acceptance_threshold, hash_bits)
        if fallback is not None:
            page_number, similarity = fallback
            consumed.add(page_number)
            results.append(PageMatch(
                originalIndex=image.original_index,
                pageNumber=page_number,
                similarity=similarity,
                passed=True
            ))
        else:
            _, best_similarity = _best_candidate(image.fingerprint, ordered_pages, consumed, hash_bits)
            logger.debug(
                f"Image {image.original_index} unmatched (best similarity {best_similarity:.2f}, "
                f"start page {start_page})"
            )
            results.append(PageMatch(
                originalIndex=image.original_index,
                pageNumber=None,
                similarity=best_similarity,
                passed=False
            ))

    return results
