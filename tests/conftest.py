"""Shared fixtures: a small banner template built in memory."""

import io
import zipfile

import pytest

from bannerbuildr.schema.models import TemplateAssets


DYNAMIC_JS = """\
devDynamicContent.parent = [{}];
devDynamicContent.parent[0].TIER = 'T0';
devDynamicContent.parent[0].id = '0';
devDynamicContent.parent[0].custom_offer = 'Default offer';
devDynamicContent.parent[0].custom_offer.Url = '';
devDynamicContent.parent[0].headline = "Default headline";
devDynamicContent.parent[0].image = {};
devDynamicContent.parent[0].image.Url = 'default.jpg';
devDynamicContent.parent[0].customGroups = '[]';
devDynamicContent.creative_data = [{}];
devDynamicContent.creative_data[0].cta = 'Shop now'; // button label
Enabler.setDevDynamicContent(devDynamicContent);
"""

INDEX_HTML = """\
<!DOCTYPE html>
<html>
<head>
  <meta name="ad.size" content="width=728,height=90">
  <script src="Dynamic.js"></script>
</head>
<body><div id="banner"></div></body>
</html>
"""

STYLE_CSS = "#banner { width: 728px; height: 90px; }\n"

LOGO_PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def make_zip(entries):
    """Zip ``(name, bytes-or-str)`` pairs into archive bytes."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in entries:
            if isinstance(content, str):
                content = content.encode("utf-8")
            zf.writestr(name, content)
    return buf.getvalue()


@pytest.fixture
def source():
    """The template's Dynamic.js text."""
    return DYNAMIC_JS


@pytest.fixture
def template_files():
    return {
        "index.html": INDEX_HTML.encode("utf-8"),
        "Dynamic.js": DYNAMIC_JS.encode("utf-8"),
        "style.css": STYLE_CSS.encode("utf-8"),
        "logo.png": LOGO_PNG,
    }


@pytest.fixture
def template(template_files):
    return TemplateAssets.from_files(template_files)


@pytest.fixture
def template_zip():
    """Template archive as a designer exports it (folder plus macOS metadata)."""
    return make_zip([
        ("banner/", b""),
        ("banner/index.html", INDEX_HTML),
        ("banner/Dynamic.js", DYNAMIC_JS),
        ("banner/css/style.css", STYLE_CSS),
        ("banner/img/logo.png", LOGO_PNG),
        ("__MACOSX/banner/._index.html", b"\x00\x05\x16\x07"),
        ("banner/.DS_Store", b"\x00\x00\x00\x01Bud1"),
    ])


@pytest.fixture
def mapping():
    return {
        "custom_offer": "devDynamicContent.parent[0].custom_offer",
        "headline": "devDynamicContent.parent[0].headline",
        "image": "devDynamicContent.parent[0].image",
        "cta": "devDynamicContent.creative_data[0].cta",
    }


@pytest.fixture
def rows():
    return [
        {"id": "101", "custom_offer": "20% off", "headline": "Big Sale",
         "image": "hero.jpg", "cta": "Buy", "offerType": ""},
        {"id": "102", "custom_offer": "", "headline": "Skipped in T1",
         "image": "", "cta": "", "offerType": "bundle"},
        {"id": "103", "custom_offer": "Free shipping", "headline": "It's here",
         "image": "https://img.example.com/a.png", "cta": "", "offerType": ""},
    ]
