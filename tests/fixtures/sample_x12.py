"""
Sample X12 271 interchanges and clearinghouse SOAP responses.

Bodies are lists of segments between BHT and SE; build_271 adds the
envelope and a correct SE count.
"""

# =============================================================================
# X12 Builders
# =============================================================================


def build_isa(
    sender: str = "OFFALLY",
    receiver: str = "1161680",
    control: str = "000000001",
    usage: str = "P",
) -> str:
    """Fixed-width (106 character) ISA segment including its terminator."""
    return (
        "ISA*00*" + " " * 10 + "*00*" + " " * 10
        + "*ZZ*" + sender.ljust(15)
        + "*ZZ*" + receiver.ljust(15)
        + f"*251219*1200*^*00501*{control}*0*{usage}*:~"
    )


def build_271(body_segments, control: str = "000000001") -> str:
    """Wrap 271 body segments (ST..SE excluded) in a full interchange."""
    body = [
        "ST*271*0001*005010X279A1",
        "BHT*0022*11*TRACE123*20251219*1200",
        *body_segments,
    ]
    body.append(f"SE*{len(body) + 1}*0001")
    return (
        build_isa(control=control)
        + "GS*HB*OFFALLY*1161680*20251219*1200*1*X*005010X279A1~"
        + "~".join(body)
        + "~GE*1*1~"
        + f"IEA*1*{control}~"
    )


MEDICAID_FFS_BODY = [
    "HL*1**20*1",
    "NM1*PR*2*UTAH MEDICAID*****PI*UTMCD",
    "HL*2*1*21*1",
    "NM1*1P*2*MOONLIT PLLC*****XX*1275348807",
    "HL*3*2*22*0",
    "TRN*2*123456789*1275348807",
    "NM1*IL*1*DOE*JANE****MI*0123456789",
    "N3*123 MAIN ST",
    "N4*SALT LAKE CITY*UT*84101",
    "DMG*D8*19900101*F",
    "DTP*307*RD8*20250101-20251231",
    "EB*1**30**TRADITIONAL ADULT",
    "EB*1**A8",
]

MEDICAID_MCO_BODY = [
    "HL*1**20*1",
    "NM1*PR*2*UTAH MEDICAID*****PI*UTMCD",
    "HL*2*1*21*1",
    "NM1*1P*2*MOONLIT PLLC*****XX*1275348807",
    "HL*3*2*22*0",
    "NM1*IL*1*SMITH*JOHN****MI*0987654321",
    "PER*IC**TE*801-555-1234",
    "DTP*291*D8*20250301",
    "EB*1*IND*30*HM*MC INTEGRATED",
    "LS*2120",
    "NM1*PR*2*MOLINA HEALTHCARE OF UTAH*****PI*2000001",
    "PER*IC**TE*8004245891",
    "LE*2120",
]

COMMERCIAL_FINANCIAL_BODY = [
    "HL*1**20*1",
    "NM1*PR*2*AETNA*****PI*60054",
    "HL*2*1*21*1",
    "NM1*1P*1*NORSETH*TRAVIS****XX*1902336593",
    "HL*3*2*22*0",
    "NM1*IL*1*DOE*JOHN****MI*W123456789",
    "EB*1*IND*30",
    "EB*C*IND*30***25*1000*****Y",
    "EB*C*IND*30***29*400*****Y",
    "EB*C*FAM*30***25*3000*****Y",
    "EB*C*FAM*30***32*500*****Y",
    "EB*G*IND*30***25*5000*****Y",
    "EB*G*IND*30***29*4200*****Y",
    "EB*B*IND*98****60*****Y",
    "MSG*SPECIALIST OFFICE VISIT",
    "EB*B*IND*98****25*****Y",
    "MSG*PRIMARY CARE OFFICE VISIT",
    "EB*B*IND*UC****75*****Y",
    "EB*B*IND*A8****30*****Y",
    "EB*A*IND*98*****.20****Y",
    "EB*C*IND*30***25*9999*****N",
]

REJECTED_BODY = [
    "HL*1**20*1",
    "NM1*PR*2*AETNA*****PI*60054",
    "HL*2*1*21*1",
    "NM1*1P*1*NORSETH*TRAVIS****XX*1902336593",
    "HL*3*2*22*0",
    "NM1*IL*1*DOE*JOHN",
    "INS*N*19",
    "AAA*N**71*C",
]


# =============================================================================
# SOAP Responses
# =============================================================================


def office_ally_response(x12_271: str) -> str:
    """Successful Office Ally response with a CDATA payload."""
    return (
        '<soap:Envelope xmlns:soap="http://www.w3.org/2003/05/soap-envelope">'
        "<soap:Body>"
        '<ns1:COREEnvelopeRealTimeResponse xmlns:ns1="http://www.caqh.org/SOAP/WSDL/CORERule2.2.0.xsd">'
        "<ns1:PayloadType>X12_271_Response_005010X279A1</ns1:PayloadType>"
        "<ns1:ProcessingMode>RealTime</ns1:ProcessingMode>"
        f"<ns1:Payload><![CDATA[{x12_271}]]></ns1:Payload>"
        "<ns1:ErrorCode>Success</ns1:ErrorCode>"
        "<ns1:ErrorMessage>None</ns1:ErrorMessage>"
        "</ns1:COREEnvelopeRealTimeResponse>"
        "</soap:Body>"
        "</soap:Envelope>"
    )


def uhin_response(x12_271: str) -> str:
    """Successful UHIN response with an XML-escaped payload."""
    escaped = x12_271.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<soap:Envelope xmlns:soap="http://www.w3.org/2003/05/soap-envelope">'
        "<soap:Body>"
        "<COREEnvelopeRealTimeResponse>"
        "<PayloadType>X12_271_Response_005010X279A1</PayloadType>"
        f"<Payload>{escaped}</Payload>"
        "<ErrorCode>Success</ErrorCode>"
        "</COREEnvelopeRealTimeResponse>"
        "</soap:Body>"
        "</soap:Envelope>"
    )


SOAP_FAULT_RESPONSE = (
    '<soap:Envelope xmlns:soap="http://www.w3.org/2003/05/soap-envelope">'
    "<soap:Body>"
    "<soap:Fault>"
    "<soap:Code><soap:Value>soap:Sender</soap:Value></soap:Code>"
    '<soap:Reason><soap:Text xml:lang="en">Authentication failed</soap:Text></soap:Reason>'
    "</soap:Fault>"
    "</soap:Body>"
    "</soap:Envelope>"
)

CORE_ENVELOPE_ERROR_RESPONSE = (
    "<soap:Envelope><soap:Body>"
    "<COREEnvelopeRealTimeResponse>"
    "<ErrorCode>PayloadIDInvalid</ErrorCode>"
    "<ErrorMessage>Duplicate PayloadID</ErrorMessage>"
    "</COREEnvelopeRealTimeResponse>"
    "</soap:Body></soap:Envelope>"
)

OFFICE_ALLY_ENVELOPE_ERROR_RESPONSE = (
    "<soap:Envelope><soap:Body>"
    "<COREEnvelopeError>"
    "<ErrorMessage>Invalid Credentials</ErrorMessage>"
    "<ErrorDescription>Username or password is incorrect</ErrorDescription>"
    "</COREEnvelopeError>"
    "</soap:Body></soap:Envelope>"
)
