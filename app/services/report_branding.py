"""
Brand agent reports.

The AI agent writes its own HTML reports carrying the vendor name and
favicon. This pass rewrites them in place: title and favicon are replaced
statically, and a script is injected that rebrands text, logos and links
once the page renders.
"""

import base64
import json
import logging
import re
from pathlib import Path
from typing import List, Optional

from app.utils.config import settings

logger = logging.getLogger(__name__)

BRAND_MARKER = 'data-origin="brand-override"'


def svg_favicon(label: str, background: str = "#101010", foreground: str = "#00E5A0") -> str:
    """Build a data URI for a square SVG icon with a short text label."""
    svg = (
        '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 64 64">'
        f'<rect width="64" height="64" rx="12" fill="{background}" />'
        '<text x="50%" y="52%" text-anchor="middle" dominant-baseline="middle" '
        f'fill="{foreground}" font-family="Arial, Helvetica, sans-serif" '
        f'font-size="24" font-weight="700">{label}</text>'
        '</svg>'
    )
    return "data:image/svg+xml;base64," + base64.b64encode(svg.encode("utf-8")).decode("ascii")


def vendor_favicon(vendor_name: Optional[str] = None) -> str:
    """Favicon the agent puts into its own reports."""
    name = vendor_name or settings.AGENT_VENDOR_NAME
    label = "".join(word[0] for word in name.split() if word).upper()[:3] or "PA"
    return svg_favicon(label, background="#1e293b", foreground="#f8fafc")


def brand_favicon(brand_name: Optional[str] = None) -> str:
    name = brand_name or settings.REPORT_BRAND_NAME
    return svg_favicon(name.split(".")[0].upper()[:4])


_SCRIPT_TEMPLATE = """
    <!-- brand override -->
    <script data-origin="brand-override">
      (function() {
        const BRAND = %(brand)s;
        const BRAND_URL = %(brand_url)s;
        const VENDOR = new RegExp(%(vendor_pattern)s, 'gi');
        const VENDOR_SLUG = %(vendor_slug)s;
        const FAVICON_DATA = %(favicon)s;
        const SHOW_TEXT = (window.NodeFilter && window.NodeFilter.SHOW_TEXT) || 4;
        const FILTER_ACCEPT = (window.NodeFilter && window.NodeFilter.FILTER_ACCEPT) || 1;
        const FILTER_REJECT = (window.NodeFilter && window.NodeFilter.FILTER_REJECT) || 2;
        const FILTER_SKIP = (window.NodeFilter && window.NodeFilter.FILTER_SKIP) || 3;

        const replaceTextNodes = (root) => {
          if (!root) return;
          const walker = document.createTreeWalker(root, SHOW_TEXT, {
            acceptNode(node) {
              const parent = node.parentNode;
              if (!parent) return FILTER_SKIP;
              const tag = parent.nodeName;
              if (tag === 'SCRIPT' || tag === 'STYLE' || tag === 'NOSCRIPT') return FILTER_REJECT;
              VENDOR.lastIndex = 0;
              return VENDOR.test(node.nodeValue) ? FILTER_ACCEPT : FILTER_SKIP;
            }
          });
          let current;
          while ((current = walker.nextNode())) {
            current.nodeValue = current.nodeValue.replace(VENDOR, BRAND);
          }
        };

        const updateLogos = () => {
          document.querySelectorAll("img[src*='" + VENDOR_SLUG + "'], img[alt]").forEach(img => {
            if (img.dataset.brandApplied === 'true') return;
            VENDOR.lastIndex = 0;
            if (!VENDOR.test(img.alt || '') && !(img.src || '').includes(VENDOR_SLUG)) return;
            img.dataset.brandApplied = 'true';
            img.alt = BRAND;
            img.src = FAVICON_DATA;
            img.removeAttribute('srcset');
          });
        };

        const updateLinks = () => {
          document.querySelectorAll("a[href*='" + VENDOR_SLUG + "']").forEach(anchor => {
            if (anchor.dataset.brandApplied === 'true') return;
            anchor.dataset.brandApplied = 'true';
            anchor.href = BRAND_URL;
            if (anchor.textContent) anchor.textContent = anchor.textContent.replace(VENDOR, BRAND);
          });
        };

        const updateTitle = () => {
          if (document.title) document.title = document.title.replace(VENDOR, BRAND);
        };

        const ensureFavicon = () => {
          let favicon = document.querySelector("link[rel='icon']");
          if (!favicon && document.head) {
            favicon = document.createElement('link');
            favicon.rel = 'icon';
            document.head.appendChild(favicon);
          }
          if (favicon) {
            favicon.type = 'image/svg+xml';
            favicon.href = FAVICON_DATA;
          }
        };

        const applyBranding = () => {
          replaceTextNodes(document.body);
          updateLogos();
          updateLinks();
          updateTitle();
          ensureFavicon();
        };

        const run = () => {
          applyBranding();
          setTimeout(applyBranding, 400);
          setTimeout(applyBranding, 1200);
        };

        if (document.readyState === 'loading') {
          document.addEventListener('DOMContentLoaded', run, { once: true });
        } else {
          run();
        }
      })();
    </script>
    """


class ReportBranding:
    """Rewrites vendor-branded agent reports with the product brand."""

    def __init__(
        self,
        report_dirs: Optional[List[str]] = None,
        brand_name: Optional[str] = None,
        brand_url: Optional[str] = None,
        vendor_name: Optional[str] = None
    ):
        self.report_dirs = [Path(d) for d in (report_dirs or settings.AGENT_REPORT_DIRS)]
        self.brand_name = brand_name or settings.REPORT_BRAND_NAME
        self.brand_url = brand_url or settings.REPORT_BRAND_URL
        self.vendor_name = vendor_name or settings.AGENT_VENDOR_NAME

    def build_script(self) -> str:
        """Client-side rebranding block, marked so it is injected only once."""
        return _SCRIPT_TEMPLATE % {
            "brand": json.dumps(self.brand_name),
            "brand_url": json.dumps(self.brand_url),
            "vendor_pattern": json.dumps(re.escape(self.vendor_name)),
            "vendor_slug": json.dumps(re.sub(r"[^a-z0-9]+", "-", self.vendor_name.lower()).strip("-")),
            "favicon": json.dumps(brand_favicon(self.brand_name)),
        }

    def brand_content(self, content: str) -> str:
        """Return the branded document; unchanged input means nothing to do."""
        vendor_title = f"Report - {self.vendor_name}"
        if vendor_title in content:
            content = content.replace(vendor_title, f"Report - {self.brand_name}")

        original_favicon = f'href="{vendor_favicon(self.vendor_name)}"'
        if original_favicon in content:
            content = content.replace(original_favicon, f'href="{brand_favicon(self.brand_name)}"')

        if BRAND_MARKER not in content:
            script = self.build_script()
            if "</head>" in content:
                content = content.replace("</head>", f"{script}</head>", 1)
            elif "</body>" in content:
                content = content.replace("</body>", f"{script}</body>", 1)

        return content

    def apply(self) -> int:
        """
        Brand every HTML report in the configured directories.

        Returns:
            Number of files rewritten
        """
        updated = 0
        visited = set()

        for directory in self.report_dirs:
            resolved = directory.resolve()
            if resolved in visited or not directory.is_dir():
                continue
            visited.add(resolved)

            for file_path in sorted(directory.iterdir()):
                if file_path.suffix != ".html" or not file_path.is_file():
                    continue
                try:
                    content = file_path.read_text(encoding="utf-8")
                except (OSError, UnicodeDecodeError) as e:
                    logger.warning(f"Skipping unreadable report {file_path}: {e}")
                    continue

                branded = self.brand_content(content)
                if branded != content:
                    file_path.write_text(branded, encoding="utf-8")
                    updated += 1

        if updated:
            logger.info(f"Applied {self.brand_name} branding to {updated} report{'' if updated == 1 else 's'}")
        return updated
