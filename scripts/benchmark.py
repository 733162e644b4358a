"""HTTP benchmark for the comment listing endpoints."""
import asyncio
import argparse
import time
import statistics
import httpx

DEFAULT_BASE_URL = "http://localhost:8000"


def build_endpoints(article_uuid: str, comment_uuid: str | None) -> list[tuple[str, str]]:
    endpoints = [
        ("roots, default order", f"/api/v1/comment/article/{article_uuid}"),
        ("roots, newest first", f"/api/v1/comment/article/{article_uuid}?order=created_at:desc"),
        (
            "roots, votes then age, page 2",
            f"/api/v1/comment/article/{article_uuid}?offset=1&limit=5"
            "&order=vote_count:desc&order=created_at:asc",
        ),
    ]
    if comment_uuid:
        endpoints.append(("replies", f"/api/v1/comment/comment/{comment_uuid}"))
    endpoints += [
        ("metrics", "/api/v1/metrics"),
        ("health", "/health"),
    ]
    return endpoints


async def benchmark_endpoint(client: httpx.AsyncClient, name: str, url: str, iterations: int = 50):
    times = []
    query_counts = []
    errors = 0

    # Warmup
    for _ in range(3):
        try:
            await client.get(url)
        except httpx.HTTPError:
            pass

    for _ in range(iterations):
        try:
            start = time.perf_counter()
            resp = await client.get(url)
            elapsed = (time.perf_counter() - start) * 1000
        except httpx.HTTPError:
            errors += 1
            continue

        if resp.status_code != 200:
            errors += 1
            continue
        times.append(elapsed)
        qc = resp.headers.get("X-Query-Count")
        if qc is not None:
            query_counts.append(int(qc))

    if not times:
        return {"name": name, "error": f"All {iterations} requests failed"}

    ordered = sorted(times)
    return {
        "name": name,
        "avg_ms": round(statistics.mean(times), 2),
        "p50_ms": round(ordered[len(ordered) // 2], 2),
        "p95_ms": round(ordered[int(len(ordered) * 0.95)], 2),
        "p99_ms": round(ordered[int(len(ordered) * 0.99)], 2),
        "queries": round(statistics.mean(query_counts), 1) if query_counts else "N/A",
        "errors": errors,
    }


async def run_benchmark(base_url: str, endpoints: list[tuple[str, str]], iterations: int = 50):
    print("=" * 80)
    print(f"Comments API Benchmark - {iterations} iterations per endpoint")
    print(f"Target: {base_url}")
    print("=" * 80)

    async with httpx.AsyncClient(base_url=base_url) as client:
        try:
            resp = await client.get("/health")
        except httpx.HTTPError as e:
            print(f"ERROR: Cannot connect to {base_url} - {e}")
            return
        if resp.status_code != 200:
            print(f"ERROR: Health check failed ({resp.status_code})")
            return

        print()
        print(f"{'Endpoint':<35} {'Avg':>9} {'P50':>9} {'P95':>9} {'P99':>9} {'Queries':>8} {'Err':>4}")
        print("-" * 80)

        for name, path in endpoints:
            result = await benchmark_endpoint(client, name, path, iterations)
            if "error" in result:
                print(f"{result['name']:<35} {'ERROR':>9}")
                continue
            print(
                f"{result['name']:<35} "
                f"{result['avg_ms']:>7.1f}ms "
                f"{result['p50_ms']:>7.1f}ms "
                f"{result['p95_ms']:>7.1f}ms "
                f"{result['p99_ms']:>7.1f}ms "
                f"{str(result['queries']):>8} "
                f"{result['errors']:>4}"
            )

        print("-" * 80)
        print("\nBenchmark complete.")


def main():
    parser = argparse.ArgumentParser(description="Benchmark the comments API")
    parser.add_argument("article_uuid", help="Article whose comments are listed")
    parser.add_argument("--comment-uuid", help="Comment whose replies are listed")
    parser.add_argument("-n", "--iterations", type=int, default=50, help="Iterations per endpoint")
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL, help="API base URL")
    args = parser.parse_args()

    endpoints = build_endpoints(args.article_uuid, args.comment_uuid)
    asyncio.run(run_benchmark(args.base_url, endpoints, args.iterations))


if __name__ == "__main__":
    main()
