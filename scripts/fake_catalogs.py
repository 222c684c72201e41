#!/usr/bin/env python3
"""
Fake catalog and recommendation APIs for local development.

Implements:
- ItemList.aspx (QueryType=Bestseller / ItemNewSpecial), JSON
- ItemSearch.aspx (Query, QueryType), JSON
- saseoApi.do (startRowNumApi / endRowNumApi), XML

Run with: python scripts/fake_catalogs.py --port 9010
Then point acquisition.yaml at it with a direct relay:

    acquisition:
      fetch:
        relays: ["{url}"]
      catalog:
        api_base: "http://127.0.0.1:9010/ttb/api"
        api_key: "test"
      recommendation:
        api_url: "http://127.0.0.1:9010/NL/search/openApi/saseoApi.do"
        api_key: "test"
"""

import argparse
import json
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import parse_qs, urlparse
from xml.sax.saxutils import escape

FAKE_BESTSELLERS = [
    {
        "itemId": 350001,
        "title": "소년이 온다",
        "author": "한강 (지은이)",
        "publisher": "창비",
        "pubDate": "2014-05-19",
        "isbn13": "9788936434120",
        "priceStandard": 15000,
        "priceSales": 13500,
        "categoryName": "국내도서>소설/시/희곡>한국소설>2000년대 이후 한국소설",
        "link": "http://www.aladin.co.kr/shop/wproduct.aspx?ItemId=350001",
        "description": "<b>2024 노벨문학상</b> 수상 작가의 장편소설",
    },
    {
        "itemId": 350002,
        "title": "원피스 108",
        "author": "오다 에이치로",
        "publisher": "대원씨아이",
        "pubDate": "2024-06-01",
        "isbn13": "9791142000000",
        "priceStandard": 5500,
        "priceSales": 4950,
        "categoryName": "국내도서>만화>소년만화",
    },
    {
        "itemId": 350003,
        "title": "트렌드 코리아",
        "author": "김난도 외",
        "publisher": "미래의창",
        "pubDate": "2024-10-01",
        "isbn13": "9788959897000",
        "priceStandard": 20000,
        "priceSales": 18000,
        "categoryName": "국내도서>경제경영>트렌드/미래전망",
    },
]

FAKE_NEW_ARRIVALS = [
    {
        "itemId": 350003,
        "title": "트렌드 코리아",
        "author": "김난도 외",
        "publisher": "미래의창",
        "pubDate": "2024-10-01",
        "isbn13": "9788959897000",
        "priceStandard": 20000,
        "priceSales": 17000,
        "categoryName": "국내도서>경제경영>트렌드/미래전망",
    },
    {
        "itemId": 350004,
        "title": "파이썬 클린 코드",
        "author": "마리아노 아나야",
        "publisher": "터닝포인트",
        "pubDate": "2025-01-15",
        "isbn13": "9788960000000",
        "priceStandard": 30000,
        "priceSales": 27000,
        "categoryName": "국내도서>컴퓨터/모바일>프로그래밍 언어>파이썬",
    },
]

FAKE_RECOMMENDATIONS = [
    {
        "recomNo": "9001",
        "recomtitle": "작별하지 않는다",
        "recomauthor": "한강",
        "recompublisher": "문학동네",
        "publishYear": "2021",
        "recomfilepath": "https://example.org/covers/9001.jpg",
        "recomcontents": "<p>제주 4·3을 다룬 장편소설</p>",
        "recomisbn": "9788954682152 8954682154",
        "drCodeName": "문학",
    },
    {
        "recomNo": "9002",
        "recomtitle": "물고기는 존재하지 않는다",
        "recomauthor": "룰루 밀러",
        "recompublisher": "곰출판",
        "publishYear": "2021",
        "recomfilepath": "",
        "recomcontents": "분류학에 관한 논픽션",
        "recomisbn": "9791189327156",
        "drCodeName": "자연과학",
    },
]


class FakeCatalogHandler(BaseHTTPRequestHandler):
    """Request handler for both fake upstreams."""

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        """Override to add prefix."""
        print(f"[FakeCatalogs] {args[0]}")

    def send_body(self, body: str, content_type: str, status: int = 200) -> None:
        self.send_response(status)
        self.send_header("Content-Type", f"{content_type}; charset=utf-8")
        self.end_headers()
        self.wfile.write(body.encode("utf-8"))

    def send_json(self, data: dict, status: int = 200) -> None:
        """Send a JSON response."""
        self.send_body(json.dumps(data, ensure_ascii=False), "application/json", status)

    def do_GET(self) -> None:
        """Handle GET requests."""
        parsed = urlparse(self.path)
        path = parsed.path
        params = parse_qs(parsed.query)

        if path.endswith("/ItemList.aspx"):
            self.handle_item_list(params)
        elif path.endswith("/ItemSearch.aspx"):
            self.handle_item_search(params)
        elif path.endswith("/saseoApi.do"):
            self.handle_recommendations(params)
        else:
            self.send_json({"errorCode": 404, "errorMessage": f"Unknown endpoint: {path}"}, 404)

    def check_ttbkey(self, params: dict) -> bool:
        if not params.get("ttbkey", [""])[0]:
            # The real API reports key errors in a 200 response
            self.send_json({"errorCode": 100, "errorMessage": "잘못된 TTBKey 입니다."})
            return False
        return True

    def handle_item_list(self, params: dict) -> None:
        if not self.check_ttbkey(params):
            return
        query_type = params.get("QueryType", ["Bestseller"])[0]
        items = FAKE_NEW_ARRIVALS if query_type == "ItemNewSpecial" else FAKE_BESTSELLERS
        limit = int(params.get("MaxResults", ["50"])[0])
        self.send_json({"totalResults": len(items), "item": items[:limit]})

    def handle_item_search(self, params: dict) -> None:
        if not self.check_ttbkey(params):
            return
        query = params.get("Query", [""])[0]
        query_type = params.get("QueryType", ["Keyword"])[0]
        field = {"Title": "title", "Author": "author", "Publisher": "publisher"}.get(query_type)

        matches = []
        for item in FAKE_BESTSELLERS + FAKE_NEW_ARRIVALS:
            haystack = item.get(field, "") if field else f"{item['title']} {item['author']}"
            if query and query in haystack and item not in matches:
                matches.append(item)
        self.send_json({"totalResults": len(matches), "item": matches})

    def handle_recommendations(self, params: dict) -> None:
        if not params.get("key", [""])[0]:
            self.send_body(
                "<error><error_code>010</error_code><error_msg>인증키 오류</error_msg></error>",
                "application/xml",
            )
            return

        start = int(params.get("startRowNumApi", ["1"])[0])
        end = int(params.get("endRowNumApi", ["50"])[0])
        rows = FAKE_RECOMMENDATIONS[start - 1 : end]

        parts = [
            "<?xml version='1.0' encoding='UTF-8'?>",
            "<channel>",
            f"<totalCount>{len(FAKE_RECOMMENDATIONS)}</totalCount>",
            "<list>",
        ]
        for row in rows:
            parts.append("<item>")
            for tag, value in row.items():
                parts.append(f"<{tag}>{escape(value)}</{tag}>")
            parts.append("</item>")
        parts.extend(["</list>", "</channel>"])
        self.send_body("".join(parts), "application/xml")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run fake catalog API servers")
    parser.add_argument(
        "--port",
        type=int,
        default=9010,
        help="Port to listen on (default: 9010)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    args = parser.parse_args()

    server = HTTPServer((args.host, args.port), FakeCatalogHandler)
    print(f"Fake catalogs running at http://{args.host}:{args.port}")
    print(f"  Catalog API base: http://{args.host}:{args.port}/ttb/api")
    print(f"  Recommendation feed: http://{args.host}:{args.port}/NL/search/openApi/saseoApi.do")
    print()

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nShutting down...")
        server.shutdown()


if __name__ == "__main__":
    main()
