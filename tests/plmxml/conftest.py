"""Shared PLMXML sample documents for the plmxml_bom tests."""

import pytest


SAMPLE_PLMXML = '''<?xml version="1.0" encoding="utf-8"?>
<PLMXML xmlns="http://www.plmxml.org/Schemas/PLMXMLSchema"
        schemaVersion="6" date="2025-01-27" time="10:15:00" author="Teamcenter V2312">
  <Header id="id1" traverseRootRefs="#id6" transferContext="ConfiguredDataFilesExportDefault"/>
  <RevisionRule id="id2" name="Latest Working"/>
  <Site id="id3" name="PLM Site" siteId="-1234567">
    <UserData id="id4">
      <UserValue title="dbms" value="oracle"/>
    </UserData>
  </Site>
  <ProductView id="id5" ruleRefs="#id2" rootRefs="id6" primaryOccurrenceRef="id6">
    <Occurrence id="id6" instancedRef="#id10" occurrenceRefs="id7 id8" associatedAttachmentRefs="#id30">
      <UserData id="id9" type="AttributesInContext">
        <UserValue title="SequenceNumber" value="10"/>
        <UserValue title="Quantity" value="1"/>
        <UserValue title="Note" value="top"/>
      </UserData>
    </Occurrence>
    <Occurrence id="id7" instancedRef="#id14">
      <UserData type="AttributesInContext">
        <UserValue title="SequenceNumber" value="20"/>
        <UserValue title="Quantity" value="4"/>
      </UserData>
    </Occurrence>
    <Occurrence id="id8" instancedRef="#id18"/>
  </ProductView>
  <Product id="id11" name="Assembly" subType="Item" productId="8882">
    <ApplicationRef application="Teamcenter" label="prodUID1" version="prodUID1"/>
  </Product>
  <ProductRevision id="id10" name="Assembly" subType="ItemRevision" revision="A" masterRef="#id11">
    <AssociatedDataSet id="id12" dataSetRef="#id20" role="IMAN_specification"/>
    <UserData id="id13">
      <UserValue title="object_string" value="8882/A;1-Assembly"/>
      <UserValue title="last_mod_date" value="2025-01-20T12:00:00"/>
      <UserValue title="owning_user" value="engineer"/>
    </UserData>
    <ApplicationRef application="Teamcenter" label="revLabel1" version="revUID1"/>
  </ProductRevision>
  <Product id="id15" name="Bracket" subType="Item" productId="8883"/>
  <ProductRevision id="id14" name="Bracket" subType="ItemRevision" revision="B" masterRef="#id15">
    <AssociatedDataSet id="id16" dataSetRef="#dsX" role="IMAN_rendering"/>
  </ProductRevision>
  <ProductRevision id="id18" subType="ItemRevision" revision="A"/>
  <DataSet id="id20" name="Assembly-JT" type="DirectModel" version="1" memberRefs="#id21">
    <ApplicationRef application="Teamcenter" label="dsUID1" version="dsUID1"/>
  </DataSet>
  <ExternalFile id="id21" locationRef="parts/assembly.jt" format="JT"/>
  <Form id="id31" name="Assembly Form" subType="ItemRevision Master" subClass="ItemRevision Master">
    <UserData id="id32" type="FormAttributes">
      <UserValue title="material" value="steel"/>
    </UserData>
    <ApplicationRef application="Teamcenter" label="formUID1" version="formUID1"/>
  </Form>
  <AssociatedAttachment id="id30" attachmentRef="#id31" role="IMAN_master_form"/>
</PLMXML>
'''


def plmxml(body: str) -> bytes:
    """Wrap element markup in a minimal PLMXML document."""
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<PLMXML xmlns="http://www.plmxml.org/Schemas/PLMXMLSchema" schemaVersion="6">'
        f"{body}"
        "</PLMXML>"
    ).encode("utf-8")


@pytest.fixture
def sample_plmxml() -> bytes:
    """A small two-level assembly export with a dataset, a file and a form."""
    return SAMPLE_PLMXML.encode("utf-8")


@pytest.fixture
def make_plmxml():
    """Factory fixture: element markup -> PLMXML document bytes."""
    return plmxml
