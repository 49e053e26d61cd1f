from api.blobs.services import signing


def _params(url):
    query = url.partition("?")[2]
    return dict(p.split("=") for p in query.split("&"))


def test_valid_signature():
    params = _params(signing.signed_url("s3cret", "tok/a.txt", 60, now=1000))
    assert params["expires"] == "1060"
    assert signing.verify("s3cret", "tok/a.txt", 1060, params["signature"], now=1000)


def test_expired_signature():
    params = _params(signing.signed_url("s3cret", "tok/a.txt", 60, now=1000))
    assert not signing.verify("s3cret", "tok/a.txt", 1060, params["signature"], now=1061)


def test_tampered_signature_or_expiry():
    params = _params(signing.signed_url("s3cret", "tok/a.txt", 60, now=1000))
    sig = params["signature"]

    assert not signing.verify("s3cret", "tok/a.txt", 1060, sig[:-1] + ("0" if sig[-1] != "0" else "1"), now=1000)
    assert not signing.verify("s3cret", "tok/a.txt", 9999, sig, now=1000)
    assert not signing.verify("other", "tok/a.txt", 1060, sig, now=1000)


def test_file_names_are_quoted():
    url = signing.signed_url("s3cret", "tok/my file.txt", 60, now=0)
    assert url.startswith("/blobs/tok/my%20file.txt?")


def test_non_ascii_signature_does_not_match():
    assert not signing.verify("s3cret", "tok/a.txt", 1060, "é" * 64, now=1000)
    assert not signing.verify("s3cret", "tok/a.txt", 1060, "", now=1000)
