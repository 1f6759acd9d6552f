"""
Stub Storefront

A small Flask app shaped like the retail site's home and search pages, so
the search scenario can run without reaching the real site.

Run with: python -m retail_e2e serve-stub --port 8099
"""

import logging
import os
from typing import Dict, List, Optional

from flask import Flask, jsonify, redirect, render_template_string, request, url_for

logger = logging.getLogger(__name__)

DEFAULT_CATALOG = [
    {"asin": "B07W6JN8V8", "title": "Wireless Keyboard and Mouse Combo", "price": "29.99"},
    {"asin": "B00F35XC9O", "title": "Mechanical Gaming Keyboard RGB Backlit", "price": "49.99"},
    {"asin": "B07S92QBCJ", "title": "Compact Bluetooth Keyboard for Tablets", "price": "22.49"},
    {"asin": "B08L5VXF2B", "title": "Ergonomic Split Keyboard", "price": "89.00"},
    {"asin": "B01NABDNPH", "title": "USB-C Wired Keyboard, Slim", "price": "18.95"},
    {"asin": "B07FKMDJQZ", "title": "Noise Cancelling Wireless Headphones", "price": "79.99"},
    {"asin": "B09B8V1LZ3", "title": "Ergonomic Wireless Mouse", "price": "24.99"},
    {"asin": "B0B7RSV894", "title": "4K Webcam with Microphone", "price": "59.99"},
]

_LAYOUT = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{{ title }}</title>
</head>
<body>
  <header id="navbar">
    <a id="nav-logo-sprites" href="{{ url_for('home') }}">Amazon.com</a>
    <form id="nav-search-bar-form" role="search" method="get" action="{{ url_for('search') }}">
      <label for="twotabsearchtextbox">Search Amazon</label>
      <input type="text" id="twotabsearchtextbox" name="field-keywords"
             value="{{ query }}" autocomplete="off" placeholder="Search Amazon">
      <input type="submit" id="nav-search-submit-button" value="Go">
    </form>
  </header>
  <main id="main">
  {% if results is none %}
    <h1>Welcome</h1>
    <p id="gw-desktop-herotator">Shop deals in Electronics</p>
  {% else %}
    <h1 class="s-result-info-bar">
      {{ results|length }} results for <span class="a-color-state">"{{ query }}"</span>
    </h1>
    {% if not results %}
    <div class="s-no-results">No results for {{ query }}.</div>
    {% endif %}
    <div class="s-main-slot s-search-results">
    {% for item in results %}
      <div data-component-type="s-search-result" data-asin="{{ item.asin }}">
        <h2><a href="/dp/{{ item.asin }}"><span>{{ item.title }}</span></a></h2>
        <span class="a-price"><span class="a-offscreen">${{ item.price }}</span></span>
      </div>
    {% endfor %}
    </div>
  {% endif %}
  </main>
</body>
</html>
"""


def search_catalog(catalog: List[Dict], query: str) -> List[Dict]:
    """Products whose title contains every query term, case-insensitively."""
    terms = query.lower().split()
    if not terms:
        return []
    return [item for item in catalog if all(t in item["title"].lower() for t in terms)]


def create_app(catalog: Optional[List[Dict]] = None) -> Flask:
    """Create the stub storefront app."""
    app = Flask(__name__)
    app.config["CATALOG"] = list(DEFAULT_CATALOG if catalog is None else catalog)

    @app.route("/")
    def home():
        return render_template_string(_LAYOUT, title="Amazon.com", query="", results=None)

    @app.route("/s")
    def search():
        # The search form submits field-keywords; results live under ?k=
        if "field-keywords" in request.args and "k" not in request.args:
            return redirect(url_for("search", k=request.args["field-keywords"]))

        query = request.args.get("k", "")
        results = search_catalog(app.config["CATALOG"], query)
        logger.debug(f"Search {query!r}: {len(results)} results")
        return render_template_string(
            _LAYOUT, title=f"Amazon.com : {query}", query=query, results=results
        )

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    return app


def main(host: str = None, port: int = None) -> None:
    """Serve the stub storefront."""
    host = host or os.environ.get("HOST", "127.0.0.1")
    port = port or int(os.environ.get("PORT", 8099))
    logger.info(f"Stub storefront on http://{host}:{port}")
    create_app().run(host=host, port=port, debug=False, use_reloader=False)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    main()
