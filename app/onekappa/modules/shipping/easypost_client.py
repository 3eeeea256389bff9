from __future__ import annotations

import json
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any


class EasyPostError(RuntimeError):
    pass


class EasyPostRateLimited(EasyPostError):
    pass


@dataclass(frozen=True)
class EasyPostClient:
    api_key: str
    base_url: str = "https://api.easypost.com/v2"
    timeout_seconds: int = 20

    def post_json(self, path: str, body: dict[str, Any], *, retries: int = 2) -> dict[str, Any]:
        url = self.base_url.rstrip("/") + path
        data = json.dumps(body).encode("utf-8")

        last_err: Exception | None = None
        for attempt in range(retries + 1):
            req = urllib.request.Request(url, data=data, method="POST")
            req.add_header("Authorization", f"Bearer {self.api_key}")
            req.add_header("Content-Type", "application/json")
            req.add_header("Accept", "application/json")
            try:
                with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                    raw = resp.read()
                    try:
                        return json.loads(raw.decode("utf-8"))
                    except ValueError as e:
                        raise EasyPostError(f"Invalid JSON from EasyPost ({path})") from e
            except urllib.error.HTTPError as e:
                if e.code == 429:
                    time.sleep(min(2 * (attempt + 1), 6))
                    last_err = EasyPostRateLimited("Rate limited (429)")
                    continue
                try:
                    body_text = e.read().decode("utf-8", errors="ignore")
                except Exception:
                    body_text = ""
                raise EasyPostError(f"HTTP {e.code} from EasyPost: {body_text[:300]}") from e
            except urllib.error.URLError as e:
                last_err = e
                time.sleep(min(1 * (attempt + 1), 3))
                continue
        raise EasyPostError(f"EasyPost request failed after retries: {last_err}")

    def create_shipment(
        self,
        *,
        to_address: dict[str, Any],
        from_address: dict[str, Any],
        parcel: dict[str, Any],
    ) -> dict[str, Any]:
        return self.post_json(
            "/shipments",
            {
                "shipment": {
                    "to_address": to_address,
                    "from_address": from_address,
                    "parcel": parcel,
                }
            },
        )
