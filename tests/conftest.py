import pytest

# NASA-style common log lines, plus one combined-format line
ACCESS_LINES = [
    '127.0.0.1 - - [01/Aug/1995:00:00:01 -0400] "GET /index.html HTTP/1.0" 200 1234',
    'uplherc.upl.com - - [01/Aug/1995:00:00:07 -0400] "GET / HTTP/1.0" 404 -',
    'in24.inetnebr.com - - [01/Aug/1995:00:00:09 -0400] "GET /shuttle/missions/sts-68/news/sts-68-mcc-05.txt HTTP/1.0" 200 1839',
    "",
    'ix-esc-ca2-07.ix.netcom.com - - [03/Aug/1995:23:59:59 -0400] "GET /images/launch-logo.gif HTTP/1.0" 304 0',
    "garbage that is not an access log line",
    '10.0.0.1 - - [31/Feb/1995:10:00:00 +0000] "GET /bad-date HTTP/1.0" 200 10',
    '10.1.1.1 - frank [10/Oct/2000:13:55:36 -0700] "GET /apache_pb.gif HTTP/1.0" 200 2326 "http://www.example.com/start.html" "Mozilla/4.08"',
    '192.168.0.9 - - [01/Sep/1995:12:00:00 +0000] "POST /cgi-bin/form HTTP/1.0" 200 -',
]


@pytest.fixture
def access_lines():
    return list(ACCESS_LINES)


@pytest.fixture
def access_log(tmp_path, access_lines):
    path = tmp_path / "access.log"
    path.write_text("\n".join(access_lines) + "\n", encoding="utf-8")
    return path
