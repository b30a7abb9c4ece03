"""
Selectors and in-page scripts for the hosted document viewers.

The PUC hosts case PDFs behind a Laserfiche WebLink viewer that renders in
one of several ways depending on the document:
- page images with a selectable text layer per page
- a PDF.js viewer with marked-content spans
- a PDF.js viewer inside #pdfViewerIFrame that lazily renders pages

Every script is a JS function expression passed to page.evaluate(); each
returns plain JSON so Python does the parsing.
"""
from __future__ import annotations

# "View plain text" toggle on WebLink pages
TEXT_MODE_BUTTON = "#TEXTMODE"

IFRAME_SELECTOR = "#pdfViewerIFrame"

# Numeric page-jump box of the image viewer
PAGE_JUMP_INPUT = "input.pageNumberInput, input#pageNum, input[name='pageNum']"

# Structure fingerprint used by the detector
STRUCTURE_PROBE = """
() => {
  const count = (sel) => document.querySelectorAll(sel).length;
  let imageTextPages = 0;
  document.querySelectorAll('.pageContainer, .imageContainer, .page-wrapper').forEach((el) => {
    if (el.querySelector('img') && el.querySelector('.textLayer, .text-layer')) {
      imageTextPages += 1;
    }
  });
  return {
    page_images: count('.pageContainer img, .imageContainer img, img.pageImage'),
    image_text_pages: imageTextPages,
    text_layers: count('.textLayer, .text-layer'),
    marked_content: count('.markedContent'),
    has_viewer_root: !!document.querySelector('#viewer.pdfViewer, .pdfViewer'),
    has_iframe: !!document.querySelector('#pdfViewerIFrame'),
  };
}
"""

# Raw text of the "Page x of N" indicator; parsed in Python
PAGE_COUNT_TEXT = """
() => {
  const el = document.querySelector('#pageCount, .pageCount, .page-count, [id$="PageCount"], .totalPages');
  if (el) return (el.value || el.textContent || '').trim();
  const m = (document.body.innerText || '').match(/(?:page\\s*\\d+\\s*)?of\\s+\\d+/i);
  return m ? m[0] : '';
}
"""

# Text layer of page n in the image viewer (falls back to the current page)
PAGE_TEXT_LAYER = """
(n) => {
  const page = document.querySelector(
      `.pageContainer[data-page-number="${n}"], .pageContainer[data-page="${n}"], #page${n}`)
    || document.querySelector('.pageContainer.current, .currentPage');
  if (!page) return '';
  const layer = page.querySelector('.textLayer, .text-layer');
  if (!layer) return '';
  return (layer.innerText || layer.textContent || '').trim();
}
"""

# Advance the image viewer by one page
IMAGE_NEXT_PAGE = """
() => {
  const b = document.querySelector('#nextPage, .nextPage, button[title="Next Page"], a[title="Next Page"]');
  if (b && !b.disabled) { b.click(); return true; }
  return false;
}
"""

# Page count as PDF.js sees it
PDFJS_PAGE_COUNT = """
() => {
  const app = window.PDFViewerApplication;
  if (app && app.pagesCount) return app.pagesCount;
  return document.querySelectorAll('.page[data-page-number]').length;
}
"""

PDFJS_READY = """
() => {
  const viewer = document.querySelector('#viewer.pdfViewer');
  return !!viewer && document.querySelectorAll('.page[data-page-number]').length > 0;
}
"""

# Marked-content fragments per rendered page: [{number, fragments: [...]}].
# With onlyLoaded, pages without data-loaded="true" are skipped.
MARKED_CONTENT_FRAGMENTS = """
(onlyLoaded) => {
  const out = [];
  document.querySelectorAll('.page[data-page-number]').forEach((page) => {
    if (onlyLoaded && page.getAttribute('data-loaded') !== 'true') return;
    const fragments = [];
    page.querySelectorAll('.markedContent span').forEach((span) => {
      if (span.querySelector('span')) return;
      const t = (span.textContent || '').trim();
      if (t) fragments.push(t);
    });
    out.push({ number: parseInt(page.getAttribute('data-page-number'), 10), fragments });
  });
  return out;
}
"""

# Scroll the viewer container to a fraction of its height
SCROLL_TO_FRACTION = """
(f) => {
  const c = document.querySelector('#viewerContainer') || document.scrollingElement || document.body;
  c.scrollTop = Math.floor(c.scrollHeight * f);
  return c.scrollTop;
}
"""

# PDF.js "next page" toolbar button
PDFJS_NEXT_PAGE = """
() => {
  const b = document.querySelector('#next');
  if (b && !b.disabled) { b.click(); return true; }
  return false;
}
"""
